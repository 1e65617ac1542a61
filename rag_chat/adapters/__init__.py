from .embed_hash import HashingEmbedder
from .llm_mock import EchoMockLLM, ScriptedMockLLM
from .loader_txt import TxtSeedLoader
from .store_memory import InMemoryDocumentStore

__all__ = [
    "HashingEmbedder",
    "EchoMockLLM", "ScriptedMockLLM",
    "TxtSeedLoader",
    "InMemoryDocumentStore",
]
