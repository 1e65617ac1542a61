import asyncio
import time

import pytest

from fakes import TableEmbedder

from rag_chat.adapters.store_memory import InMemoryDocumentStore
from rag_chat.domain.errors import DimensionMismatchError, SeedingError
from rag_chat.domain.models import Document
from rag_chat.use_cases.retriever import Retriever
from rag_chat.use_cases.seeder import DocumentSeeder

TABLE = {
    "REST APIs use HTTP methods and are stateless.": [1.0, 0.0, 0.0],
    "AWS Lambda is a serverless compute service.": [0.0, 1.0, 0.0],
    "Express.js is a minimal Node.js web framework.": [0.0, 0.0, 1.0],
    "what is lambda": [0.1, 0.9, 0.0],
}
TEXTS = list(TABLE)[:3]


def test_seed_preserves_text_order():
    emb = TableEmbedder(table=TABLE)
    store = InMemoryDocumentStore()

    n = asyncio.run(DocumentSeeder(embedder=emb, store=store).seed(TEXTS))

    assert n == 3
    assert store.ready
    assert store.dim == 3
    assert [d.content for d in store.all()] == TEXTS
    assert emb.calls == TEXTS


def test_concurrent_seed_preserves_text_order():
    emb = TableEmbedder(table=TABLE, delay_s=0.01)
    store = InMemoryDocumentStore()

    asyncio.run(DocumentSeeder(embedder=emb, store=store, concurrency=3).seed(TEXTS))

    assert [d.content for d in store.all()] == TEXTS


def test_fail_fast_aborts_and_publishes_nothing():
    emb = TableEmbedder(table=TABLE, failing={TEXTS[1]})
    store = InMemoryDocumentStore()

    with pytest.raises(SeedingError) as ei:
        asyncio.run(DocumentSeeder(embedder=emb, store=store, policy="fail_fast").seed(TEXTS))

    assert ei.value.index == 1
    assert not store.ready
    assert store.count() == 0
    # после первой ошибки дальше не идём
    assert emb.calls == TEXTS[:2]


def test_fail_fast_with_concurrency_still_aborts():
    emb = TableEmbedder(table=TABLE, failing={TEXTS[2]})
    store = InMemoryDocumentStore()

    with pytest.raises(SeedingError):
        asyncio.run(DocumentSeeder(embedder=emb, store=store, concurrency=4).seed(TEXTS))
    assert store.count() == 0


def test_fail_fast_with_concurrency_cancels_outstanding_embeds():
    class SlowEmbedder(TableEmbedder):
        async def embed(self, text):
            if text not in self.failing:
                await asyncio.sleep(5)
            return await super().embed(text)

    emb = SlowEmbedder(table=TABLE, failing={TEXTS[0]})
    store = InMemoryDocumentStore()

    started = time.monotonic()
    with pytest.raises(SeedingError) as ei:
        asyncio.run(DocumentSeeder(embedder=emb, store=store, concurrency=3).seed(TEXTS))

    assert ei.value.index == 0
    # медленные эмбеддинги отменены, а не дождались
    assert time.monotonic() - started < 2
    assert emb.calls == [TEXTS[0]]
    assert not store.ready


def test_partial_policy_keeps_successful_documents():
    emb = TableEmbedder(table=TABLE, failing={TEXTS[0]})
    store = InMemoryDocumentStore()

    n = asyncio.run(DocumentSeeder(embedder=emb, store=store, policy="partial").seed(TEXTS))

    assert n == 2
    assert [d.content for d in store.all()] == TEXTS[1:]

    retriever = Retriever(embedder=emb, store=store)
    assert asyncio.run(retriever.retrieve("what is lambda", 1)) == "AWS Lambda is a serverless compute service."
    assert asyncio.run(retriever.retrieve("what is lambda", 5)).split("\n") == [
        "AWS Lambda is a serverless compute service.",
        "Express.js is a minimal Node.js web framework.",
    ]


def test_blank_texts_are_skipped():
    emb = TableEmbedder(table=TABLE)
    store = InMemoryDocumentStore()

    n = asyncio.run(DocumentSeeder(embedder=emb, store=store).seed(["", TEXTS[0], "   "]))

    assert n == 1
    assert emb.calls == [TEXTS[0]]


def test_unknown_policy_rejected():
    with pytest.raises(ValueError):
        DocumentSeeder(embedder=TableEmbedder(table={}), store=InMemoryDocumentStore(), policy="yolo")


def test_mixed_dimensions_are_rejected():
    emb = TableEmbedder(table={"a": [1.0, 0.0], "b": [1.0, 0.0, 0.0]})
    store = InMemoryDocumentStore()

    with pytest.raises(DimensionMismatchError):
        asyncio.run(DocumentSeeder(embedder=emb, store=store).seed(["a", "b"]))
    assert not store.ready


def test_store_is_seeded_once():
    store = InMemoryDocumentStore()
    store.publish([Document(content="x", embedding=(1.0,))])
    with pytest.raises(RuntimeError):
        store.publish([Document(content="y", embedding=(1.0,))])
    assert [d.content for d in store.all()] == ["x"]


def test_document_requires_content():
    with pytest.raises(ValueError):
        Document(content="  ", embedding=(1.0,))
