from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from rag_chat.use_cases.relay import CompletionRelay
from rag_chat.use_cases.retriever import Retriever, assemble_context


@dataclass
class ChatEngine:
    retriever: Retriever
    relay: CompletionRelay
    top_k: int = 2

    async def handle_message(self, message: str) -> str:
        text, _meta = await self.handle_message_ex(message)
        return text

    async def handle_message_ex(self, message: str) -> Tuple[str, Dict[str, Any]]:
        ranked = await self.retriever.rank(message, self.top_k)
        context = assemble_context(ranked)

        completion = await self.relay.complete(context, message)

        meta: Dict[str, Any] = {
            "rag": {
                "chosen": len(ranked),
                "scores": [round(c.score, 4) for c in ranked],
                "positions": [c.position for c in ranked],
            },
            "llm_usage": dict(completion.usage),
        }
        return completion.reply, meta

    def stream_message(self, message: str) -> AsyncIterator[str]:
        return self.relay.complete_stream(message)
