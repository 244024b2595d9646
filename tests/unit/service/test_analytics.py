"""Unit tests for the Qdrant embedding sink with mocked clients."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from chainlens.domain.domain_value import SessionId, ToolInvocation
from chainlens.service.analytics import DENSE_VECTOR, EmbeddingSinkConfig, QdrantEmbeddingSink, describe_invocation
from tests.conftest import ADDRESS

INVOCATION = ToolInvocation(name="getBalance", arguments={"address": ADDRESS}, result={"formatted": "1.5"})


def make_sink(exists: bool = False) -> tuple[QdrantEmbeddingSink, MagicMock, MagicMock]:
    qdrant = MagicMock()
    qdrant.collection_exists = AsyncMock(return_value=exists)
    qdrant.create_collection = AsyncMock()
    qdrant.upsert = AsyncMock()
    embedder = MagicMock()
    embedder.embeddings = AsyncMock(return_value={"embedding": [0.1, 0.2, 0.3]})
    sink = QdrantEmbeddingSink(
        qdrant=qdrant,
        embedder=embedder,
        config=EmbeddingSinkConfig(collection="tool_invocations"),
    )
    return sink, qdrant, embedder


def test_description_includes_tool_arguments_and_result():
    text = describe_invocation(INVOCATION)

    assert text.startswith("getBalance")
    assert ADDRESS in text
    assert "1.5" in text


@pytest.mark.asyncio
async def test_record_embeds_and_upserts_point():
    sink, qdrant, embedder = make_sink()

    await sink.record(SessionId("session_a"), INVOCATION)

    embedder.embeddings.assert_awaited_once()
    assert embedder.embeddings.await_args.kwargs["model"] == "nomic-embed-text"
    qdrant.create_collection.assert_awaited_once()
    point = qdrant.upsert.await_args.kwargs["points"][0]
    assert point.vector == {DENSE_VECTOR: [0.1, 0.2, 0.3]}
    assert point.payload["session_id"] == "session_a"
    assert point.payload["tool"] == "getBalance"


@pytest.mark.asyncio
async def test_existing_collection_is_reused_and_checked_once():
    sink, qdrant, _ = make_sink(exists=True)

    await sink.record(SessionId("session_a"), INVOCATION)
    await sink.record(SessionId("session_a"), INVOCATION)

    qdrant.create_collection.assert_not_awaited()
    qdrant.collection_exists.assert_awaited_once()
    assert qdrant.upsert.await_count == 2
