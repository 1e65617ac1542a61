from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class SeedLoader(Protocol):
    """Файл -> список текстов для сидинга базы знаний."""

    def load(self, path: str) -> Sequence[str]:
        ...
