import asyncio

import pytest

from ragdesk.core.exceptions import VectorIndexError
from ragdesk.schemas.document import VectorRecord
from ragdesk.services.rag.vector_store import PineconeVectorIndex
from tests.fakes import FakePineconeIndex, fake_embedding


@pytest.fixture
def pinecone_index():
    return FakePineconeIndex()


@pytest.fixture
def index(pinecone_index):
    return PineconeVectorIndex(pinecone_index, namespace="", batch_size=100)


def record(i, text=None, **metadata):
    text = text or f"record {i}"
    return VectorRecord(id=f"v{i}", values=fake_embedding(text), metadata={"text": text, **metadata})


def test_upsert_is_batched_at_100(pinecone_index, index):
    asyncio.run(index.upsert([record(i) for i in range(250)]))

    assert pinecone_index.upsert_batches == [100, 100, 50]
    assert len(pinecone_index.vectors) == 250


def test_upsert_overwrites_existing_ids(pinecone_index, index):
    asyncio.run(index.upsert([record(1, text="first version")]))
    asyncio.run(index.upsert([record(1, text="second version")]))

    assert len(pinecone_index.vectors) == 1
    assert pinecone_index.vectors["v1"]["metadata"]["text"] == "second version"


def test_query_filters_on_equality_and_orders_by_score(pinecone_index, index):
    asyncio.run(index.upsert([
        record(1, text="annual leave policy for staff", chatId="a"),
        record(2, text="leave policy", chatId="a"),
        record(3, text="parking rules", chatId="a"),
        record(4, text="leave policy", chatId="b"),
    ]))

    matches = asyncio.run(index.query(fake_embedding("leave policy"), top_k=10, filter={"chatId": "a"}))

    assert pinecone_index.queries[-1]["filter"] == {"chatId": {"$eq": "a"}}
    assert {match.id for match in matches} == {"v1", "v2", "v3"}
    assert matches[0].id == "v2"
    scores = [match.score for match in matches]
    assert scores == sorted(scores, reverse=True)


def test_query_without_filter_passes_none(pinecone_index, index):
    asyncio.run(index.query(fake_embedding("anything"), top_k=3))
    assert pinecone_index.queries[-1]["filter"] is None


def test_delete_is_batched_and_ignores_missing_ids(pinecone_index, index):
    asyncio.run(index.upsert([record(i) for i in range(120)]))

    asyncio.run(index.delete_many([f"v{i}" for i in range(120)] + ["missing-1", "missing-2"]))

    assert pinecone_index.delete_batches == [100, 22]
    assert pinecone_index.vectors == {}


def test_upsert_failure_is_wrapped(pinecone_index, index):
    pinecone_index.fail_upsert_after = 1

    with pytest.raises(VectorIndexError):
        asyncio.run(index.upsert([record(i) for i in range(150)]))

    # The first batch stays written
    assert len(pinecone_index.vectors) == 100


def test_query_failure_is_wrapped(pinecone_index, index):
    pinecone_index.fail_query = True

    with pytest.raises(VectorIndexError):
        asyncio.run(index.query(fake_embedding("x"), top_k=1))
