from __future__ import annotations

import json
import logging
import warnings
from dataclasses import dataclass
from typing import List, Optional, Sequence

from rag_chat.domain.errors import DimensionMismatchError, EmptyStoreWarning
from rag_chat.domain.models import ScoredCandidate
from rag_chat.ports.embeddings import Embedder
from rag_chat.ports.vector_store import DocumentStore
from rag_chat.use_cases.similarity import cosine_similarity

log = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n"


def assemble_context(candidates: Sequence[ScoredCandidate]) -> str:
    return CONTEXT_SEPARATOR.join(c.content for c in candidates)


@dataclass
class Retriever:
    """Линейный top-k поиск по косинусу. O(N) на запрос, для маленькой базы хватает."""

    embedder: Embedder
    store: DocumentStore
    top_k: int = 2
    ready_timeout_s: float = 5.0

    async def rank(self, query: str, k: Optional[int] = None) -> List[ScoredCandidate]:
        k = self.top_k if k is None else int(k)
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")

        if not self.store.ready and not await self.store.wait_ready(self.ready_timeout_s):
            log.warning(json.dumps({"event": "store_not_ready", "waited_s": self.ready_timeout_s}))

        docs = self.store.all()
        if not docs:
            log.warning(json.dumps({"event": "retrieve_empty_store"}))
            warnings.warn("Document store is empty, answering without context", EmptyStoreWarning, stacklevel=2)
            return []

        query_vec = await self.embedder.embed(query)

        try:
            scored = [
                ScoredCandidate(content=d.content, score=cosine_similarity(query_vec, d.embedding), position=i)
                for i, d in enumerate(docs)
            ]
        except DimensionMismatchError as e:
            log.error(json.dumps({
                "event": "dimension_mismatch",
                "query_dim": len(query_vec),
                "store_dim": self.store.dim,
                "error": str(e),
            }))
            raise

        # sort стабильный: при равных score остаётся порядок хранилища
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored[:k]

    async def retrieve(self, query: str, k: Optional[int] = None) -> str:
        return assemble_context(await self.rank(query, k))
