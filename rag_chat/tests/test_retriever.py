import asyncio

import pytest

from fakes import TableEmbedder

from rag_chat.adapters.embed_hash import HashingEmbedder
from rag_chat.adapters.store_memory import InMemoryDocumentStore
from rag_chat.domain.errors import DimensionMismatchError, EmptyStoreWarning
from rag_chat.domain.models import Document
from rag_chat.use_cases.retriever import Retriever
from rag_chat.use_cases.seeder import DocumentSeeder

CATS = "cats are mammals"
DOGS = "dogs are mammals"
PARIS = "Paris is in France"
QUERY = "are cats mammals?"

TABLE = {
    CATS: [1.0, 0.10, 0.0],
    DOGS: [0.98, 0.14, 0.01],
    PARIS: [0.0, 0.05, 1.0],
    QUERY: [0.99, 0.12, 0.0],
}


def _seeded(texts, table=TABLE):
    emb = TableEmbedder(table=dict(table))
    store = InMemoryDocumentStore()
    asyncio.run(DocumentSeeder(embedder=emb, store=store).seed(texts))
    return emb, store


def test_mammals_scenario_returns_two_mammal_texts():
    emb, store = _seeded([CATS, DOGS, PARIS])
    retriever = Retriever(embedder=emb, store=store)

    ranked = asyncio.run(retriever.rank(QUERY, 2))
    assert {c.content for c in ranked} == {CATS, DOGS}
    assert ranked[0].score >= ranked[1].score

    context = asyncio.run(retriever.retrieve(QUERY, 2))
    assert context == "\n".join(c.content for c in ranked)
    assert PARIS not in context


def test_retrieval_is_deterministic():
    emb, store = _seeded([CATS, DOGS, PARIS])
    retriever = Retriever(embedder=emb, store=store)

    first = asyncio.run(retriever.retrieve(QUERY, 3))
    for _ in range(5):
        assert asyncio.run(retriever.retrieve(QUERY, 3)) == first


def test_k_larger_than_store_returns_all_in_rank_order():
    emb, store = _seeded([PARIS, CATS, DOGS])
    retriever = Retriever(embedder=emb, store=store)

    ranked = asyncio.run(retriever.rank(QUERY, 10))
    assert len(ranked) == 3
    assert ranked[-1].content == PARIS
    assert [c.score for c in ranked] == sorted((c.score for c in ranked), reverse=True)
    assert asyncio.run(retriever.retrieve(QUERY, 10)).split("\n") == [c.content for c in ranked]


def test_equal_scores_keep_store_order():
    table = {"b first": [1.0, 0.0], "a second": [1.0, 0.0], "q": [1.0, 0.0]}
    emb, store = _seeded(["b first", "a second"], table)
    retriever = Retriever(embedder=emb, store=store)

    assert asyncio.run(retriever.retrieve("q", 2)) == "b first\na second"
    assert asyncio.run(retriever.retrieve("q", 1)) == "b first"


def test_empty_store_returns_empty_string_without_embedding():
    emb = TableEmbedder(table={})
    store = InMemoryDocumentStore()
    store.publish([])
    retriever = Retriever(embedder=emb, store=store)

    with pytest.warns(EmptyStoreWarning):
        assert asyncio.run(retriever.retrieve("anything", 2)) == ""
    assert emb.calls == []


def test_unready_store_is_tolerated():
    store = InMemoryDocumentStore()
    retriever = Retriever(embedder=TableEmbedder(table={}), store=store, ready_timeout_s=0.01)

    with pytest.warns(EmptyStoreWarning):
        assert asyncio.run(retriever.retrieve("early bird", 2)) == ""


def test_request_waits_for_seeding_to_finish():
    emb = TableEmbedder(table=dict(TABLE), delay_s=0.01)
    store = InMemoryDocumentStore()
    seeder = DocumentSeeder(embedder=emb, store=store)
    retriever = Retriever(embedder=emb, store=store, ready_timeout_s=5.0)

    async def scenario():
        seeding = asyncio.create_task(seeder.seed([CATS, DOGS, PARIS]))
        context = await retriever.retrieve(QUERY, 2)
        await seeding
        return context

    context = asyncio.run(scenario())
    assert set(context.split("\n")) == {CATS, DOGS}


def test_k_must_be_positive():
    emb, store = _seeded([CATS])
    retriever = Retriever(embedder=emb, store=store)
    with pytest.raises(ValueError):
        asyncio.run(retriever.retrieve(QUERY, 0))


def test_query_dimension_mismatch_raises():
    store = InMemoryDocumentStore()
    store.publish([Document(content=CATS, embedding=(1.0, 0.0, 0.0))])
    retriever = Retriever(embedder=TableEmbedder(table={"q": [1.0, 0.0]}), store=store)

    with pytest.raises(DimensionMismatchError):
        asyncio.run(retriever.retrieve("q", 1))


def test_hashing_embedder_end_to_end():
    emb = HashingEmbedder()
    store = InMemoryDocumentStore()
    asyncio.run(DocumentSeeder(embedder=emb, store=store).seed([
        "France capital is Paris.",
        "Germany capital is Berlin.",
        "AWS Lambda is a serverless compute service.",
    ]))
    retriever = Retriever(embedder=emb, store=store, top_k=1)

    assert asyncio.run(retriever.retrieve("capital France is Paris")) == "France capital is Paris."
