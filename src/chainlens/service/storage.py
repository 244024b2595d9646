"""Storage service - lazy Redis and Qdrant clients built from config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from qdrant_client import AsyncQdrantClient
    from redis.asyncio import Redis


class MemoryStoreConfig(BaseModel):
    """Redis connection configuration."""

    url: str
    socket_timeout: float = 2.0

    model_config = ConfigDict(frozen=True)


class VectorStoreConfig(BaseModel):
    """Qdrant vector database configuration."""

    url: str
    collection: str

    model_config = ConfigDict(frozen=True)


class StorageService:
    """
    Thin holder for infrastructure clients.

    Responsibilities:
    - Provide the Redis client behind the Redis TTL stores
    - Provide the Qdrant client behind the embedding analytics sink
    - Lazy initialization, so the memory backend never imports or dials Redis
    """

    def __init__(self, memory_config: MemoryStoreConfig, vector_config: VectorStoreConfig | None = None):
        self.memory_config = memory_config
        self.vector_config = vector_config
        self._memory_client: Redis | None = None
        self._vector_client: AsyncQdrantClient | None = None

    def get_memory_client(self) -> Redis:
        """Get or create Redis client (lazy)."""
        if self._memory_client is None:
            from redis.asyncio import Redis

            self._memory_client = Redis.from_url(
                self.memory_config.url,
                socket_timeout=self.memory_config.socket_timeout,
                socket_connect_timeout=self.memory_config.socket_timeout,
            )
        return self._memory_client

    def get_vector_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client (lazy)."""
        if self.vector_config is None:
            raise RuntimeError("Vector store is not configured")
        if self._vector_client is None:
            from qdrant_client import AsyncQdrantClient

            self._vector_client = AsyncQdrantClient(url=self.vector_config.url)
        return self._vector_client

    async def close(self) -> None:
        if self._memory_client is not None:
            await self._memory_client.aclose()
            self._memory_client = None
        if self._vector_client is not None:
            await self._vector_client.close()
            self._vector_client = None


def create_storage_service(
    memory_config: MemoryStoreConfig,
    vector_config: VectorStoreConfig | None = None,
) -> StorageService:
    """Factory from infrastructure configs."""
    return StorageService(memory_config, vector_config)


__all__ = ["MemoryStoreConfig", "StorageService", "VectorStoreConfig", "create_storage_service"]
