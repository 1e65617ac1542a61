from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import httpx

from rag_chat.domain.errors import CompletionServiceError, ServiceTimeoutError
from rag_chat.domain.models import ChatMessage
from rag_chat.ports.llm import LLMClient, LLMResponse


def _strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


@dataclass
class OllamaLLMClient(LLMClient):
    base_url: str = "http://127.0.0.1:11434"
    model: str = "llama3.1:8b"
    timeout_s: float = 120.0

    client: Optional[httpx.AsyncClient] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.base_url = _strip_trailing_slash(self.base_url)
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout_s)

    def _payload(
        self,
        messages: Sequence[ChatMessage],
        stream: bool,
        max_output_tokens: Optional[int],
        temperature: Optional[float],
    ) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = float(temperature)
        if max_output_tokens is not None:
            options["num_predict"] = int(max_output_tokens)

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": (m.content or "")} for m in messages],
            "stream": stream,
        }
        if options:
            payload["options"] = options
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
            r = await self.client.post(
                f"{self.base_url}/api/chat",
                json=self._payload(messages, False, max_output_tokens, temperature),
            )
            r.raise_for_status()
            data = r.json() if r.content else {}
        except httpx.TimeoutException as e:
            raise ServiceTimeoutError("completion", self.timeout_s) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CompletionServiceError(f"Ollama request failed: {e}") from e

        if not isinstance(data, dict):
            raise CompletionServiceError(f"Ollama returned malformed response: {type(data).__name__}")

        text = ""
        msg = data.get("message")
        if isinstance(msg, dict):
            text = (msg.get("content") or "").strip()

        if not text:
            text = (data.get("response") or data.get("content") or "").strip()

        usage = {
            "input_tokens": int(data.get("prompt_eval_count") or 0),
            "output_tokens": int(data.get("eval_count") or 0),
        }

        return LLMResponse(text=text, usage=usage)

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        assert self.client is not None

        payload = self._payload(messages, True, max_output_tokens, temperature)
        try:
            # NDJSON: одна строка = один кусок ответа, последняя с done=true
            async with self.client.stream("POST", f"{self.base_url}/api/chat", json=payload) as r:
                r.raise_for_status()
                async for line in r.aiter_lines():
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    if not isinstance(data, dict):
                        raise CompletionServiceError(f"Ollama stream line is not an object: {line[:80]!r}")
                    msg = data.get("message")
                    token = msg.get("content") if isinstance(msg, dict) else None
                    if token:
                        yield token
                    if data.get("done"):
                        break
        except httpx.TimeoutException as e:
            raise ServiceTimeoutError("completion", self.timeout_s) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CompletionServiceError(f"Ollama stream failed: {e}") from e

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
