from .embeddings import Embedder
from .llm import LLMClient, LLMResponse
from .loaders import SeedLoader
from .vector_store import DocumentStore

__all__ = [
    "Embedder",
    "LLMClient",
    "LLMResponse",
    "SeedLoader",
    "DocumentStore",
]
