from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from rag_chat.domain.models import ChatMessage, LLMUsage


@dataclass(frozen=True)
class LLMResponse:
    text: str
    usage: LLMUsage = field(default_factory=dict)


@runtime_checkable
class LLMClient(Protocol):
    """Общий интерфейс к LLM (реальный/мок)."""

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        ...

    def stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        ...
