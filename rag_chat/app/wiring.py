from __future__ import annotations

from dataclasses import dataclass
from typing import List

from rag_chat.app.settings import AppSettings

from rag_chat.ports.embeddings import Embedder
from rag_chat.ports.llm import LLMClient

from rag_chat.adapters.loader_txt import TxtSeedLoader
from rag_chat.adapters.store_memory import InMemoryDocumentStore

from rag_chat.use_cases.chat_engine import ChatEngine
from rag_chat.use_cases.relay import CompletionRelay
from rag_chat.use_cases.retriever import Retriever
from rag_chat.use_cases.seeder import DocumentSeeder


@dataclass(frozen=True)
class RagBundle:
    embedder: Embedder
    llm: LLMClient
    store: InMemoryDocumentStore
    seeder: DocumentSeeder
    retriever: Retriever
    relay: CompletionRelay
    engine: ChatEngine

    async def aclose(self) -> None:
        for client in (self.embedder, self.llm):
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()


def _build_embedder(settings: AppSettings) -> Embedder:
    rag = settings.rag
    backend = settings.engine.embedder_backend

    if backend == "openai":
        from rag_chat.adapters.embed_openai import OpenAIEmbedder
        return OpenAIEmbedder(
            model=rag.openai_embedding_model,
            api_key=settings.openai_api_key,
            timeout_s=rag.embedding_timeout_s,
            expected_dim=rag.embedding_dim,
        )
    if backend == "sbert":
        from rag_chat.adapters.embed_sbert import SentenceTransformerEmbedder
        return SentenceTransformerEmbedder(model_name=rag.sbert_model, timeout_s=rag.embedding_timeout_s)

    from rag_chat.adapters.embed_hash import HashingEmbedder
    return HashingEmbedder(_dim=rag.hash_dim)


def _build_llm(settings: AppSettings) -> LLMClient:
    eng = settings.engine

    if eng.llm_backend == "openai":
        from rag_chat.adapters.llm_openai import OpenAIChatClient
        return OpenAIChatClient(
            model=eng.openai_chat_model,
            api_key=settings.openai_api_key,
            timeout_s=eng.timeout_s,
        )
    if eng.llm_backend == "ollama":
        from rag_chat.adapters.llm_ollama import OllamaLLMClient
        return OllamaLLMClient(base_url=eng.ollama_url, model=eng.ollama_model, timeout_s=eng.timeout_s)

    from rag_chat.adapters.llm_mock import EchoMockLLM
    return EchoMockLLM()


def load_seed_texts(settings: AppSettings) -> List[str]:
    if settings.rag.seed_file:
        return TxtSeedLoader().load(settings.rag.seed_file)
    return list(settings.rag.seed_texts)


def build_bundle(
    settings: AppSettings,
    *,
    embedder: Embedder | None = None,
    llm: LLMClient | None = None,
) -> RagBundle:
    """Собирает граф объектов. embedder/llm можно подменить (тесты, эксперименты)."""
    eng = settings.engine
    rag = settings.rag

    embedder = embedder if embedder is not None else _build_embedder(settings)
    llm = llm if llm is not None else _build_llm(settings)

    store = InMemoryDocumentStore()
    seeder = DocumentSeeder(
        embedder=embedder,
        store=store,
        policy=rag.seed_policy,
        concurrency=rag.seed_concurrency,
    )
    retriever = Retriever(
        embedder=embedder,
        store=store,
        top_k=rag.top_k,
        ready_timeout_s=rag.ready_timeout_s,
    )
    relay = CompletionRelay(
        llm=llm,
        instruction=eng.instruction,
        stream_system_prompt=eng.stream_system_prompt,
        max_output_tokens=eng.max_output_tokens,
        temperature=eng.temperature,
        timeout_s=eng.timeout_s,
        chunk_timeout_s=eng.stream_chunk_timeout_s,
    )
    engine = ChatEngine(retriever=retriever, relay=relay, top_k=rag.top_k)

    return RagBundle(
        embedder=embedder,
        llm=llm,
        store=store,
        seeder=seeder,
        retriever=retriever,
        relay=relay,
        engine=engine,
    )
