from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Embedder(Protocol):
    """Текст -> эмбеддинг фиксированной размерности. Один вызов = один запрос."""

    async def embed(self, text: str) -> list[float]:
        ...

    @property
    def dim(self) -> Optional[int]:
        ...
