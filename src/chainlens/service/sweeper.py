"""Periodic eviction of expired store entries."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping

from ..domain.ports import TTLStore

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Background task calling ``evict_expired`` on every store each interval.

    Args:
        stores: Store name → store, names are used in logs
        interval_seconds: Delay between sweeps
    """

    def __init__(self, stores: Mapping[str, TTLStore], *, interval_seconds: float = 60.0) -> None:
        self._stores = dict(stores)
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> dict[str, int]:
        """Run one sweep; returns evicted counts per store."""
        evicted: dict[str, int] = {}
        for name, store in self._stores.items():
            evicted[name] = await store.evict_expired()
        total = sum(evicted.values())
        if total:
            logger.info("Sweeper evicted %d expired entries: %s", total, evicted)
        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Cache sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="cache-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


__all__ = ["CacheSweeper"]
