from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Sequence, Tuple, TypedDict

Role = Literal["system", "user", "assistant"]

Vector = Sequence[float]


class LLMUsage(TypedDict, total=False):
    input_tokens: int
    output_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str = ""


@dataclass(frozen=True)
class Document:
    """Текст базы знаний + его эмбеддинг. Создаётся один раз при сидинге."""

    content: str
    embedding: Tuple[float, ...]

    def __post_init__(self) -> None:
        if not self.content or not self.content.strip():
            raise ValueError("Document content must be non-empty")

    @property
    def dim(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True)
class ScoredCandidate:
    content: str
    score: float
    position: int


@dataclass(frozen=True)
class Completion:
    reply: str
    usage: LLMUsage = field(default_factory=dict)
