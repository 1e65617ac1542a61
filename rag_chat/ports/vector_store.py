from __future__ import annotations

from collections.abc import Sequence
from typing import Optional, Protocol, runtime_checkable

from rag_chat.domain.models import Document


@runtime_checkable
class DocumentStore(Protocol):
    """Хранилище документов базы знаний (заполняется один раз при старте)."""

    def publish(self, documents: Sequence[Document]) -> None:
        ...

    def all(self) -> tuple[Document, ...]:
        ...

    def count(self) -> int:
        ...

    @property
    def dim(self) -> Optional[int]:
        ...

    @property
    def ready(self) -> bool:
        ...

    async def wait_ready(self, timeout_s: float) -> bool:
        ...
