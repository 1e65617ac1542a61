from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import List, Optional

from rag_chat.domain.errors import ServiceTimeoutError
from rag_chat.domain.models import ChatMessage, Completion
from rag_chat.ports.llm import LLMClient

log = logging.getLogger(__name__)

DEFAULT_INSTRUCTION = "Answer using the context below."
DEFAULT_STREAM_SYSTEM_PROMPT = "You are a helpful assistant."


@dataclass
class CompletionRelay:
    llm: LLMClient
    instruction: str = DEFAULT_INSTRUCTION
    stream_system_prompt: str = DEFAULT_STREAM_SYSTEM_PROMPT
    max_output_tokens: int = 150
    temperature: float = 0.7
    stream_max_output_tokens: Optional[int] = None
    stream_temperature: Optional[float] = None
    timeout_s: float = 60.0
    chunk_timeout_s: float = 30.0

    def build_messages(self, system_context: str, user_message: str) -> List[ChatMessage]:
        return [
            ChatMessage(role="system", content=f"{self.instruction}\n\n{system_context}"),
            ChatMessage(role="user", content=user_message),
        ]

    async def complete(self, system_context: str, user_message: str) -> Completion:
        """Один запрос, один ответ. Ошибки адаптера пробрасываются как есть, без ретраев."""
        messages = self.build_messages(system_context, user_message)
        try:
            resp = await asyncio.wait_for(
                self.llm.generate(
                    messages,
                    max_output_tokens=self.max_output_tokens,
                    temperature=self.temperature,
                ),
                timeout=self.timeout_s,
            )
        except ServiceTimeoutError:
            raise
        except asyncio.TimeoutError as e:
            raise ServiceTimeoutError("completion", self.timeout_s) from e

        log.info(json.dumps({"event": "completion", "usage": dict(resp.usage)}))
        return Completion(reply=resp.text, usage=resp.usage)

    async def complete_stream(self, user_message: str) -> AsyncIterator[str]:
        """
        Ленивый конечный поток токенов, пробрасываются сразу по приходу.
        Если потребитель закрыл поток (aclose/cancel), upstream тоже закрывается.
        Ошибка посреди потока не пробрасывается: уже отданные токены не отозвать,
        поэтому поток просто заканчивается, детали уходят в лог.
        """
        messages = [
            ChatMessage(role="system", content=self.stream_system_prompt),
            ChatMessage(role="user", content=user_message),
        ]
        upstream = self.llm.stream(
            messages,
            max_output_tokens=self.stream_max_output_tokens,
            temperature=self.stream_temperature,
        )
        it = upstream.__aiter__()
        sent = 0
        try:
            while True:
                try:
                    token = await asyncio.wait_for(it.__anext__(), timeout=self.chunk_timeout_s)
                except StopAsyncIteration:
                    break
                except ServiceTimeoutError:
                    raise
                except asyncio.TimeoutError as e:
                    raise ServiceTimeoutError("completion stream", self.chunk_timeout_s) from e
                if not token:
                    continue
                sent += 1
                yield token
        except Exception as e:
            log.error(
                json.dumps({"event": "stream_error", "tokens_sent": sent, "error": repr(e)}, ensure_ascii=False),
                exc_info=True,
            )
            return
        finally:
            aclose = getattr(it, "aclose", None)
            if aclose is not None:
                await aclose()

        log.info(json.dumps({"event": "stream_end", "tokens_sent": sent}))
