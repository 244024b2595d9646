"""Analytics sinks fed with executed tool invocations.

Sinks run as background tasks after the turn has been answered; anything
they raise is logged by the orchestrator and never reaches the user.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from qdrant_client.models import Distance, PointStruct, VectorParams

from ..domain.domain_value import SessionId, ToolInvocation

if TYPE_CHECKING:
    from ollama import AsyncClient as OllamaClient
    from qdrant_client import AsyncQdrantClient

logger = logging.getLogger(__name__)

DENSE_VECTOR = "dense"
RESULT_PREVIEW_CHARS = 500


class EmbeddingSinkConfig(BaseModel):
    """Where and how tool invocations are embedded."""

    collection: str
    embedding_model: str = "nomic-embed-text"

    model_config = ConfigDict(frozen=True)


def describe_invocation(invocation: ToolInvocation) -> str:
    """Text embedded for an invocation: tool, arguments and a result preview."""
    arguments = json.dumps(invocation.arguments, sort_keys=True, default=str)
    result = json.dumps(invocation.result, default=str)[:RESULT_PREVIEW_CHARS]
    return f"{invocation.name} {arguments} -> {result}"


class QdrantEmbeddingSink:
    """Embeds each invocation with Ollama and upserts it into Qdrant.

    The collection is created on first use, sized from the first embedding.
    Points carry a random id; the same invocation recorded twice yields two
    points.
    """

    def __init__(self, *, qdrant: AsyncQdrantClient, embedder: OllamaClient, config: EmbeddingSinkConfig) -> None:
        self._qdrant = qdrant
        self._embedder = embedder
        self._config = config
        self._collection_ready = False

    async def _ensure_collection(self, size: int) -> None:
        if self._collection_ready:
            return
        if not await self._qdrant.collection_exists(self._config.collection):
            await self._qdrant.create_collection(
                collection_name=self._config.collection,
                vectors_config={DENSE_VECTOR: VectorParams(size=size, distance=Distance.COSINE)},
            )
            logger.info("Created Qdrant collection %s (dim=%d)", self._config.collection, size)
        self._collection_ready = True

    async def record(self, session_id: SessionId, invocation: ToolInvocation) -> None:
        text = describe_invocation(invocation)
        response = await self._embedder.embeddings(model=self._config.embedding_model, prompt=text)
        vector = list(response["embedding"])
        await self._ensure_collection(len(vector))

        point = PointStruct(
            id=str(uuid4()),
            vector={DENSE_VECTOR: vector},
            payload={
                "session_id": session_id.root,
                "tool": invocation.name,
                "arguments": invocation.arguments,
                "cached": invocation.cached,
                "text": text,
                "recorded_at": datetime.now(UTC).isoformat(),
            },
        )
        await self._qdrant.upsert(collection_name=self._config.collection, points=[point])
        logger.debug("Recorded %s for session %s", invocation.name, session_id.root)


__all__ = ["EmbeddingSinkConfig", "QdrantEmbeddingSink", "describe_invocation"]
