"""TTL stores backing sessions, conversation cache entries and tool results.

Both stores implement the ``TTLStore`` port. The in-memory store is the
default; the Redis store shares state across processes and degrades to
"always miss" when Redis is unreachable.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import TYPE_CHECKING, Generic, TypeVar

from pydantic import BaseModel, ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

DEFAULT_SHARDS = 8


class InMemoryTTLStore(Generic[T]):
    """Sharded store with store-wide LRU and per-entry expiry.

    Entries live in shards, each guarded by its own asyncio.Lock, so the
    sweeper never holds one lock across the whole store. Recency is tracked
    store-wide: capacity counts every shard and the entry evicted is the
    least recently used one in the whole store.

    Args:
        max_entries: Total capacity (None for unbounded)
        shards: Number of shards
        clock: Monotonic time source in seconds, injectable for tests
    """

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        shards: int = DEFAULT_SHARDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._clock = clock
        self._max_entries = max_entries
        self._shards: list[dict[str, tuple[T, float]]] = [{} for _ in range(shards)]
        self._locks = [asyncio.Lock() for _ in range(shards)]
        self._recency: OrderedDict[str, None] = OrderedDict()

    def _index(self, key: str) -> int:
        return hash(key) % len(self._shards)

    def _drop(self, key: str) -> bool:
        self._recency.pop(key, None)
        return self._shards[self._index(key)].pop(key, None) is not None

    async def get(self, key: str) -> T | None:
        i = self._index(key)
        async with self._locks[i]:
            slot = self._shards[i].get(key)
            if slot is None:
                return None
            value, expires_at = slot
            if self._clock() >= expires_at:
                self._drop(key)
                return None
            self._recency.move_to_end(key)
            return value

    async def put(self, key: str, value: T, ttl_seconds: int) -> None:
        i = self._index(key)
        async with self._locks[i]:
            self._shards[i][key] = (value, self._clock() + ttl_seconds)
            self._recency[key] = None
            self._recency.move_to_end(key)
        if self._max_entries is not None:
            while len(self._recency) > self._max_entries:
                oldest = next(iter(self._recency))
                async with self._locks[self._index(oldest)]:
                    self._drop(oldest)
                logger.debug("LRU evicted %s", oldest)

    async def evict(self, key: str) -> bool:
        async with self._locks[self._index(key)]:
            return self._drop(key)

    async def evict_expired(self) -> int:
        """Drop expired entries shard by shard; returns how many were removed."""
        removed = 0
        for shard, lock in zip(self._shards, self._locks, strict=True):
            async with lock:
                now = self._clock()
                expired = [key for key, (_, expires_at) in shard.items() if now >= expires_at]
                for key in expired:
                    self._drop(key)
                removed += len(expired)
        return removed

    async def size(self) -> int:
        return len(self._recency)


class RedisHealth:
    """Outage state shared by every store on one Redis client.

    The first failure after a healthy period logs a warning, later failures
    log at debug, and the first success afterwards logs recovery.
    """

    def __init__(self) -> None:
        self.degraded = False

    def failed(self, operation: str, key: str, exc: Exception) -> None:
        if not self.degraded:
            logger.warning("Redis %s %s failed, continuing uncached: %s", operation, key, exc)
            self.degraded = True
        else:
            logger.debug("Redis %s %s failed: %s", operation, key, exc)

    def succeeded(self) -> None:
        if self.degraded:
            logger.info("Redis reachable again")
            self.degraded = False


class RedisTTLStore(Generic[M]):
    """Redis-backed store for pydantic models, serialized as JSON.

    Expiry is native (SETEX). On connection or timeout errors the store
    behaves as an empty cache until Redis answers again. Stores sharing a
    client should share one ``RedisHealth`` so an outage warns once.
    """

    def __init__(
        self, client: Redis, *, prefix: str, model_type: type[M], health: RedisHealth | None = None
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._model_type = model_type
        self._health = health or RedisHealth()

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _on_failure(self, operation: str, key: str, exc: Exception) -> None:
        self._health.failed(operation, self._key(key), exc)

    def _on_success(self) -> None:
        self._health.succeeded()

    async def get(self, key: str) -> M | None:
        try:
            raw = await self._client.get(self._key(key))
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self._on_failure("get", key, exc)
            return None
        self._on_success()
        if raw is None:
            return None
        try:
            return self._model_type.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable cache entry %s: %s", key, exc)
            return None

    async def put(self, key: str, value: M, ttl_seconds: int) -> None:
        try:
            await self._client.setex(self._key(key), ttl_seconds, value.model_dump_json())
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self._on_failure("put", key, exc)
            return
        self._on_success()

    async def evict(self, key: str) -> bool:
        try:
            removed = await self._client.delete(self._key(key))
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self._on_failure("evict", key, exc)
            return False
        self._on_success()
        return bool(removed)

    async def evict_expired(self) -> int:
        # Redis expires keys itself
        return 0

    async def size(self) -> int:
        count = 0
        try:
            async for _ in self._client.scan_iter(match=f"{self._prefix}*"):
                count += 1
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self._on_failure("scan", "*", exc)
            return 0
        self._on_success()
        return count


__all__ = ["DEFAULT_SHARDS", "InMemoryTTLStore", "RedisHealth", "RedisTTLStore"]
