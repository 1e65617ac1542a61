from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional

import openai
from openai import AsyncOpenAI

from rag_chat.domain.errors import EmbeddingServiceError, ServiceTimeoutError
from rag_chat.ports.embeddings import Embedder

log = logging.getLogger(__name__)


def _parse_vector(resp: Any) -> List[float]:
    data = getattr(resp, "data", None)
    if not isinstance(data, list) or not data:
        raise EmbeddingServiceError("Malformed embedding response: no data")

    raw = getattr(data[0], "embedding", None)
    if not isinstance(raw, list) or not raw:
        raise EmbeddingServiceError("Malformed embedding response: embedding is not a non-empty list")

    out: List[float] = []
    for v in raw:
        # bool это int, но не число для нас
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise EmbeddingServiceError(f"Malformed embedding response: non-numeric value {v!r}")
        out.append(float(v))
    return out


@dataclass
class OpenAIEmbedder(Embedder):
    model: str = "text-embedding-3-small"
    api_key: Optional[str] = None
    timeout_s: float = 20.0
    expected_dim: Optional[int] = None

    client: Optional[AsyncOpenAI] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            # ретраи не наши: политика повторов у вызывающего
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout_s, max_retries=0)

    @property
    def dim(self) -> Optional[int]:
        return self.expected_dim

    async def embed(self, text: str) -> List[float]:
        assert self.client is not None

        try:
            resp = await asyncio.wait_for(
                self.client.embeddings.create(model=self.model, input=text),
                timeout=self.timeout_s,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            raise ServiceTimeoutError("embedding", self.timeout_s) from e
        except openai.OpenAIError as e:
            raise EmbeddingServiceError(f"Embedding request failed: {e}") from e

        vec = _parse_vector(resp)
        if self.expected_dim is not None and len(vec) != self.expected_dim:
            raise EmbeddingServiceError(
                f"Embedding dim {len(vec)} does not match expected {self.expected_dim}"
            )

        log.debug("embedded %d chars -> %d dims (%s)", len(text), len(vec), self.model)
        return vec

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
