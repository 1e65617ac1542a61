from __future__ import annotations

import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from rag_chat.domain.models import ChatMessage
from rag_chat.ports.llm import LLMClient, LLMResponse

_CHUNK_RE = re.compile(r"\s*\S+")


def _last_user(messages: Sequence[ChatMessage]) -> str:
    last: Optional[ChatMessage] = next((m for m in reversed(messages) if m.role == "user"), None)
    return last.content if last else ""


def _split_chunks(text: str) -> List[str]:
    # "The answer is 4." -> ["The", " answer", " is", " 4."]
    return _CHUNK_RE.findall(text)


class EchoMockLLM(LLMClient):
    async def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        text = f"[mock] Ответ на: {_last_user(messages)}"
        return LLMResponse(text=text, usage={"input_tokens": 0, "output_tokens": 0})

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        for chunk in _split_chunks(f"[mock] Ответ на: {_last_user(messages)}"):
            yield chunk


@dataclass
class ScriptedMockLLM(LLMClient):
    rules: Dict[str, str] = field(default_factory=dict)
    chunks: Optional[List[str]] = None

    def _reply(self, messages: Sequence[ChatMessage]) -> str:
        prompt = _last_user(messages).lower()
        for k, v in self.rules.items():
            if k.lower() in prompt:
                return v
        return "[mock] Не знаю что сказать."

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        return LLMResponse(text=self._reply(messages), usage={"input_tokens": 0, "output_tokens": 0})

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        chunks = self.chunks if self.chunks is not None else _split_chunks(self._reply(messages))
        for chunk in chunks:
            yield chunk
