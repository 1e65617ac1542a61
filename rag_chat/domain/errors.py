from __future__ import annotations

from typing import Optional


class RagChatError(Exception):
    pass


class EmbeddingServiceError(RagChatError):
    """Сервис эмбеддингов недоступен или вернул мусор."""


class CompletionServiceError(RagChatError):
    """Сервис chat completion недоступен или вернул ошибку."""


class DimensionMismatchError(RagChatError, ValueError):
    """Векторы разной (или нулевой) размерности. Это баг конфигурации, не сеть."""

    def __init__(self, left: int, right: Optional[int] = None):
        self.left = left
        self.right = right
        if right is None:
            msg = f"Vector must be non-empty (got dim={left})"
        else:
            msg = f"Vector dim mismatch: {left} != {right}"
        super().__init__(msg)


class ServiceTimeoutError(RagChatError, TimeoutError):
    def __init__(self, service: str, timeout_s: float):
        self.service = service
        self.timeout_s = timeout_s
        super().__init__(f"{service} call timed out after {timeout_s:g}s")


class SeedingError(RagChatError):
    def __init__(self, index: int, text: str):
        self.index = index
        self.text = text
        preview = text if len(text) <= 60 else text[:57] + "..."
        super().__init__(f"Seeding aborted at text #{index}: {preview!r}")


class EmptyStoreWarning(UserWarning):
    """Поиск по пустому хранилищу: не ошибка, LLM ответит без контекста."""
