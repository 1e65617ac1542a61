from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from rag_chat.domain.errors import EmbeddingServiceError, SeedingError, ServiceTimeoutError
from rag_chat.domain.models import Document
from rag_chat.ports.embeddings import Embedder
from rag_chat.ports.vector_store import DocumentStore

log = logging.getLogger(__name__)

SEED_POLICIES = ("fail_fast", "partial")

_EmbedFailure = (EmbeddingServiceError, ServiceTimeoutError)


@dataclass
class DocumentSeeder:
    """
    Заполняет хранилище один раз при старте: один вызов эмбеддера на текст.
    fail_fast: первая ошибка эмбеддинга -> SeedingError, в хранилище ничего не попадает.
    partial: упавшие тексты пропускаются, остальные публикуются в исходном порядке.
    """

    embedder: Embedder
    store: DocumentStore
    policy: str = "fail_fast"
    concurrency: int = 1

    def __post_init__(self) -> None:
        if self.policy not in SEED_POLICIES:
            raise ValueError(f"Unknown seed policy {self.policy!r}, expected one of {SEED_POLICIES}")

    async def _embed(self, text: str) -> Document:
        vec = await self.embedder.embed(text)
        return Document(content=text, embedding=tuple(vec))

    async def _embed_all(
        self, items: Sequence[Tuple[int, str]]
    ) -> List[Union[Document, BaseException]]:
        if self.concurrency <= 1:
            out: List[Union[Document, BaseException]] = []
            for i, text in items:
                try:
                    out.append(await self._embed(text))
                except _EmbedFailure as e:
                    if self.policy == "fail_fast":
                        raise SeedingError(i, text) from e
                    out.append(e)
            return out

        sem = asyncio.Semaphore(self.concurrency)

        async def one(i: int, text: str) -> Document:
            async with sem:
                try:
                    return await self._embed(text)
                except _EmbedFailure as e:
                    if self.policy == "fail_fast":
                        raise SeedingError(i, text) from e
                    raise

        tasks = [asyncio.ensure_future(one(i, t)) for i, t in items]
        try:
            # gather сохраняет порядок входа, независимо от порядка завершения
            return await asyncio.gather(*tasks, return_exceptions=self.policy != "fail_fast")
        finally:
            # fail_fast: после первой ошибки остальные эмбеддинги не ждём
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def seed(self, texts: Sequence[str]) -> int:
        items: List[Tuple[int, str]] = []
        for i, text in enumerate(texts):
            if not text or not text.strip():
                log.warning(json.dumps({"event": "seed_skip_blank", "index": i}))
                continue
            items.append((i, text))

        results = await self._embed_all(items)

        docs: List[Document] = []
        failed: List[int] = []
        for (i, text), res in zip(items, results):
            if isinstance(res, Document):
                docs.append(res)
                continue
            if not isinstance(res, _EmbedFailure):
                raise res
            if self.policy == "fail_fast":
                raise SeedingError(i, text) from res
            failed.append(i)
            log.warning(json.dumps({"event": "seed_skip_failed", "index": i, "error": str(res)}, ensure_ascii=False))

        self.store.publish(docs)

        dim: Optional[int] = self.store.dim
        log.info(json.dumps({
            "event": "seed",
            "policy": self.policy,
            "documents": len(docs),
            "failed": failed,
            "dim": dim,
        }))
        return len(docs)
