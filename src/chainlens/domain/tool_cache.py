"""Tool Result Cache - Memoized Tool Execution.

Identical (tool, arguments) pairs inside their TTL never reach the tool
provider twice. Concurrent identical requests share a single in-flight
execution. Failures are never stored.

Key derivation:
    sha256("<tool>:<canonical JSON>") where canonical JSON sorts keys and
    uses compact separators, so argument order never splits the cache.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .domain_type import ToolCategory
from .ports import TTLStore

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TTL = 300

DEFAULT_CATEGORY_TTLS: dict[ToolCategory, int] = {
    ToolCategory.GAS: 30,
    ToolCategory.BLOCK: 15,
    ToolCategory.BALANCE: 60,
    ToolCategory.HISTORY: 120,
    ToolCategory.TRANSACTION: 300,
    ToolCategory.TRANSFER: 300,
    ToolCategory.TOKEN: 3600,
    ToolCategory.ADDRESS: 3600,
    ToolCategory.CONTRACT: 86400,
}


def canonical_arguments(arguments: Mapping[str, Any]) -> str:
    return json.dumps(dict(arguments), sort_keys=True, separators=(",", ":"), default=str)


def cache_key(tool: str, arguments: Mapping[str, Any]) -> str:
    return hashlib.sha256(f"{tool}:{canonical_arguments(arguments)}".encode()).hexdigest()


class ToolResultRecord(BaseModel):
    """Stored successful tool result."""

    tool: str
    arguments: dict[str, Any]
    value: Any = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ttl_seconds: int

    model_config = ConfigDict(frozen=True)


class ToolResultCache:
    """Memoization layer in front of the tool provider.

    Attributes:
        hits: Lookups served from the store or a shared in-flight execution
        misses: Lookups that started a new execution
    """

    def __init__(
        self,
        store: TTLStore[ToolResultRecord],
        *,
        ttl_by_category: Mapping[ToolCategory, int] | None = None,
        default_ttl: int = DEFAULT_TOOL_TTL,
    ) -> None:
        self._store = store
        self._ttls = dict(DEFAULT_CATEGORY_TTLS if ttl_by_category is None else ttl_by_category)
        self._default_ttl = default_ttl
        self._inflight: dict[str, asyncio.Task[Any]] = {}
        self.hits = 0
        self.misses = 0

    @property
    def store(self) -> TTLStore[ToolResultRecord]:
        return self._store

    def ttl_for(self, category: ToolCategory) -> int:
        return self._ttls.get(category, self._default_ttl)

    async def get(self, tool: str, arguments: Mapping[str, Any]) -> ToolResultRecord | None:
        return await self._store.get(cache_key(tool, arguments))

    async def get_or_execute(
        self,
        tool: str,
        arguments: Mapping[str, Any],
        category: ToolCategory,
        execute: Callable[[], Awaitable[Any]],
    ) -> tuple[Any, bool]:
        """Return ``(value, cached)``.

        ``cached`` is False only for the caller whose request actually ran the
        tool. Exceptions from ``execute`` propagate to every waiting caller and
        leave the cache untouched.
        """
        key = cache_key(tool, arguments)

        record = await self._store.get(key)
        if record is not None:
            self.hits += 1
            logger.debug("Tool cache hit: %s %s", tool, key[:12])
            return record.value, True

        inflight = self._inflight.get(key)
        if inflight is not None:
            self.hits += 1
            logger.debug("Joining in-flight execution: %s %s", tool, key[:12])
            return await asyncio.shield(inflight), True

        self.misses += 1
        task = asyncio.ensure_future(self._execute_and_store(key, tool, dict(arguments), category, execute))
        self._inflight[key] = task
        task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task), False

    async def _execute_and_store(
        self,
        key: str,
        tool: str,
        arguments: dict[str, Any],
        category: ToolCategory,
        execute: Callable[[], Awaitable[Any]],
    ) -> Any:
        value = await execute()
        ttl = self.ttl_for(category)
        await self._store.put(key, ToolResultRecord(tool=tool, arguments=arguments, value=value, ttl_seconds=ttl), ttl)
        return value

    async def invalidate(self, tool: str, arguments: Mapping[str, Any]) -> bool:
        return await self._store.evict(cache_key(tool, arguments))


__all__ = [
    "DEFAULT_CATEGORY_TTLS",
    "DEFAULT_TOOL_TTL",
    "ToolResultCache",
    "ToolResultRecord",
    "cache_key",
    "canonical_arguments",
]
