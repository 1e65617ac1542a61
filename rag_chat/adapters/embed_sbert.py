from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from rag_chat.domain.errors import EmbeddingServiceError, ServiceTimeoutError
from rag_chat.ports.embeddings import Embedder


@dataclass
class SentenceTransformerEmbedder(Embedder):
    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    timeout_s: float = 30.0

    def __post_init__(self) -> None:
        from sentence_transformers import SentenceTransformer
        self._model = SentenceTransformer(self.model_name)

    @property
    def dim(self) -> Optional[int]:
        return self._model.get_sentence_embedding_dimension()

    async def embed(self, text: str) -> List[float]:
        # encode() синхронный и тяжёлый, уводим в поток
        try:
            vec = await asyncio.wait_for(
                asyncio.to_thread(self._model.encode, text, normalize_embeddings=True),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise ServiceTimeoutError("embedding", self.timeout_s) from e
        except Exception as e:
            raise EmbeddingServiceError(f"sentence-transformers failed: {e}") from e
        return [float(v) for v in vec.tolist()]
