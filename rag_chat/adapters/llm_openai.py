from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from rag_chat.domain.errors import CompletionServiceError, ServiceTimeoutError
from rag_chat.domain.models import ChatMessage, LLMUsage
from rag_chat.ports.llm import LLMClient, LLMResponse


def _to_openai(messages: Sequence[ChatMessage]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": (m.content or "")} for m in messages]


def _usage(raw: Any) -> LLMUsage:
    if raw is None:
        return {}
    return {
        "input_tokens": int(getattr(raw, "prompt_tokens", 0) or 0),
        "output_tokens": int(getattr(raw, "completion_tokens", 0) or 0),
        "total_tokens": int(getattr(raw, "total_tokens", 0) or 0),
    }


@dataclass
class OpenAIChatClient(LLMClient):
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    timeout_s: float = 60.0

    client: Optional[AsyncOpenAI] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout_s, max_retries=0)

    def _payload(
        self,
        messages: Sequence[ChatMessage],
        max_output_tokens: Optional[int],
        temperature: Optional[float],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model, "messages": _to_openai(messages)}
        if max_output_tokens is not None:
            payload["max_tokens"] = int(max_output_tokens)
        if temperature is not None:
            payload["temperature"] = float(temperature)
        return payload

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        assert self.client is not None

        try:
            resp = await self.client.chat.completions.create(
                **self._payload(messages, max_output_tokens, temperature)
            )
        except openai.APITimeoutError as e:
            raise ServiceTimeoutError("completion", self.timeout_s) from e
        except openai.OpenAIError as e:
            raise CompletionServiceError(f"Completion request failed: {e}") from e

        choices = getattr(resp, "choices", None) or []
        if not choices:
            raise CompletionServiceError("Malformed completion response: no choices")

        text = (choices[0].message.content or "").strip()
        return LLMResponse(text=text, usage=_usage(getattr(resp, "usage", None)))

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        assert self.client is not None

        try:
            upstream = await self.client.chat.completions.create(
                **self._payload(messages, max_output_tokens, temperature),
                stream=True,
            )
        except openai.APITimeoutError as e:
            raise ServiceTimeoutError("completion", self.timeout_s) from e
        except openai.OpenAIError as e:
            raise CompletionServiceError(f"Completion stream failed: {e}") from e

        try:
            async for chunk in upstream:
                if not chunk.choices:
                    continue
                token = chunk.choices[0].delta.content
                if token:
                    yield token
        except openai.OpenAIError as e:
            raise CompletionServiceError(f"Completion stream broke: {e}") from e
        finally:
            # закрываем HTTP-ответ, даже если потребитель ушёл на середине
            await upstream.close()

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
