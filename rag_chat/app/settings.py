from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_SEED_TEXTS: Tuple[str, ...] = (
    "REST APIs use HTTP methods and are stateless.",
    "AWS Lambda is a serverless compute service.",
    "Express.js is a minimal Node.js web framework.",
)


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None or v.strip() == "" else v


def _env_opt_str(name: str) -> Optional[str]:
    v = os.getenv(name)
    return None if v is None or v.strip() == "" else v


def _env_choice(name: str, default: str, allowed: set[str]) -> str:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    val = v.strip().lower()
    return val if val in allowed else default


@dataclass(frozen=True)
class EngineSettings:
    instruction: str = "Answer using the context below."
    stream_system_prompt: str = "You are a helpful assistant."
    max_output_tokens: int = 150
    temperature: float = 0.7

    timeout_s: float = 60.0
    stream_chunk_timeout_s: float = 30.0

    llm_backend: str = "mock"        # mock | openai | ollama
    embedder_backend: str = "hash"   # hash | openai | sbert

    openai_chat_model: str = "gpt-4o-mini"

    ollama_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.1:8b"


@dataclass(frozen=True)
class RagSettings:
    top_k: int = 2
    seed_file: Optional[str] = None
    seed_policy: str = "fail_fast"   # fail_fast | partial
    seed_concurrency: int = 1
    ready_timeout_s: float = 5.0

    embedding_timeout_s: float = 20.0
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_dim: Optional[int] = None
    hash_dim: int = 256
    sbert_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    seed_texts: Tuple[str, ...] = DEFAULT_SEED_TEXTS


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass(frozen=True)
class AppSettings:
    engine: EngineSettings = field(default_factory=EngineSettings)
    rag: RagSettings = field(default_factory=RagSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    openai_api_key: Optional[str] = field(default=None, repr=False)

    @staticmethod
    def from_env(dotenv: bool = True) -> "AppSettings":
        if dotenv:
            load_dotenv()

        eng = EngineSettings(
            instruction=_env_str("CE_INSTRUCTION", EngineSettings.instruction),
            stream_system_prompt=_env_str("CE_STREAM_SYSTEM_PROMPT", EngineSettings.stream_system_prompt),
            max_output_tokens=_env_int("CE_MAX_OUTPUT_TOKENS", EngineSettings.max_output_tokens),
            temperature=_env_float("CE_TEMPERATURE", EngineSettings.temperature),

            timeout_s=_env_float("CE_TIMEOUT_S", EngineSettings.timeout_s),
            stream_chunk_timeout_s=_env_float("CE_STREAM_CHUNK_TIMEOUT_S", EngineSettings.stream_chunk_timeout_s),

            llm_backend=_env_choice("CE_LLM", EngineSettings.llm_backend, {"mock", "openai", "ollama"}),
            embedder_backend=_env_choice("CE_EMBEDDER", EngineSettings.embedder_backend, {"hash", "openai", "sbert"}),

            openai_chat_model=_env_str("CE_OPENAI_CHAT_MODEL", EngineSettings.openai_chat_model),

            ollama_url=_env_str("CE_OLLAMA_URL", EngineSettings.ollama_url),
            ollama_model=_env_str("CE_OLLAMA_MODEL", EngineSettings.ollama_model),
        )

        dim = _env_int("CE_EMBEDDING_DIM", 0)
        rag = RagSettings(
            top_k=_env_int("CE_RAG_TOPK", RagSettings.top_k),
            seed_file=_env_opt_str("CE_SEED_FILE"),
            seed_policy=_env_choice("CE_SEED_POLICY", RagSettings.seed_policy, {"fail_fast", "partial"}),
            seed_concurrency=_env_int("CE_SEED_CONCURRENCY", RagSettings.seed_concurrency),
            ready_timeout_s=_env_float("CE_READY_TIMEOUT_S", RagSettings.ready_timeout_s),

            embedding_timeout_s=_env_float("CE_EMBEDDING_TIMEOUT_S", RagSettings.embedding_timeout_s),
            openai_embedding_model=_env_str("CE_OPENAI_EMBEDDING_MODEL", RagSettings.openai_embedding_model),
            embedding_dim=dim if dim > 0 else None,
            hash_dim=_env_int("CE_HASH_DIM", RagSettings.hash_dim),
            sbert_model=_env_str("CE_SBERT_MODEL", RagSettings.sbert_model),
        )

        server = ServerSettings(
            host=_env_str("CE_HOST", ServerSettings.host),
            port=_env_int("CE_PORT", ServerSettings.port),
        )

        return AppSettings(
            engine=eng,
            rag=rag,
            server=server,
            openai_api_key=_env_opt_str("OPENAI_API_KEY"),
        )
