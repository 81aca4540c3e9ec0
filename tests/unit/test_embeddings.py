import asyncio

import pytest

from ragdesk.core.config import settings
from ragdesk.core.exceptions import EmbeddingProviderError
from ragdesk.services.rag.embeddings import GeminiEmbeddingClient
from tests.fakes import FakeGenaiClient, fake_embedding


@pytest.fixture
def genai():
    return FakeGenaiClient()


@pytest.fixture
def embeddings(genai):
    return GeminiEmbeddingClient(client=genai, settings=settings)


def test_indexing_is_batched_at_96_and_keeps_order(genai, embeddings):
    texts = [f"chunk text number {i}" for i in range(200)]

    vectors = asyncio.run(embeddings.embed_for_indexing(texts))

    assert [call["size"] for call in genai.embed_calls] == [96, 96, 8]
    assert vectors == [fake_embedding(text) for text in texts]
    assert {call["task_type"] for call in genai.embed_calls} == {"RETRIEVAL_DOCUMENT"}


def test_query_uses_query_task_type(genai, embeddings):
    vector = asyncio.run(embeddings.embed_for_query("what is the leave policy"))

    assert vector == fake_embedding("what is the leave policy")
    assert genai.embed_calls[-1]["task_type"] == "RETRIEVAL_QUERY"


def test_empty_input_makes_no_calls(genai, embeddings):
    assert asyncio.run(embeddings.embed_for_indexing([])) == []
    assert genai.embed_calls == []


def test_any_failed_batch_fails_the_whole_call(genai, embeddings):
    genai.fail_embed_on_call = 2

    with pytest.raises(EmbeddingProviderError) as exc_info:
        asyncio.run(embeddings.embed_for_indexing([f"text {i}" for i in range(150)]))

    assert "quota" in exc_info.value.message


def test_short_response_is_an_error(genai, embeddings):
    genai.drop_embeddings = True

    with pytest.raises(EmbeddingProviderError):
        asyncio.run(embeddings.embed_for_indexing(["one", "two"]))
