from __future__ import annotations

import asyncio
from typing import Optional, Sequence, Tuple

from rag_chat.domain.errors import DimensionMismatchError
from rag_chat.domain.models import Document
from rag_chat.ports.vector_store import DocumentStore


class InMemoryDocumentStore(DocumentStore):
    """
    Документы живут в памяти процесса, порядок = порядок сидинга.
    Публикуется один раз целиком (атомарная замена кортежа), после этого только чтение,
    поэтому блокировки не нужны.
    """

    def __init__(self) -> None:
        self._docs: Tuple[Document, ...] = ()
        self._dim: Optional[int] = None
        self._ready = asyncio.Event()
        self._published = False

    @property
    def dim(self) -> Optional[int]:
        return self._dim

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    def count(self) -> int:
        return len(self._docs)

    def all(self) -> Tuple[Document, ...]:
        return self._docs

    def publish(self, documents: Sequence[Document]) -> None:
        if self._published:
            raise RuntimeError("Document store is already seeded")

        docs = tuple(documents)
        dim: Optional[int] = None
        for d in docs:
            if d.dim == 0:
                raise DimensionMismatchError(0)
            if dim is None:
                dim = d.dim
            elif d.dim != dim:
                raise DimensionMismatchError(dim, d.dim)

        self._docs = docs
        self._dim = dim
        self._published = True
        self._ready.set()

    async def wait_ready(self, timeout_s: float) -> bool:
        if self._ready.is_set():
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            return False
        return True
