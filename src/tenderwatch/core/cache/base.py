"""
Cache store interface.

One entry per source, addressed by ``tender:{source_id}``. Entries are
immutable ``CacheEntry`` values replaced wholesale on every write, so a
reader sees either the previous entry or the new one, never a mix.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Sequence

from tenderwatch.core.logging import get_logger
from tenderwatch.core.models import CacheEntry, TenderRecord, utcnow

logger = get_logger("cache")

KEY_PREFIX = "tender:"

RefreshFn = Callable[[], Awaitable[Sequence[TenderRecord]]]


def cache_key_for(source_id: str) -> str:
    """Cache key for a source's tender list."""
    return f"{KEY_PREFIX}{source_id}"


class CacheStore(ABC):
    """Key-value store of CacheEntry values with per-key TTLs."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or utcnow
        self._inflight: dict[str, asyncio.Future[CacheEntry]] = {}

    def now(self) -> datetime:
        return self._clock()

    def make_entry(
        self,
        data: Sequence[TenderRecord],
        ttl: float,
        *,
        source_id: str,
        is_fallback: bool = False,
    ) -> CacheEntry:
        fetched_at = self.now()
        return CacheEntry(
            source_id=source_id,
            data=tuple(data),
            fetched_at=fetched_at,
            ttl_expires_at=fetched_at + timedelta(seconds=ttl),
            is_fallback=is_fallback,
        )

    @abstractmethod
    async def get(self, key: str, allow_stale: bool = False) -> CacheEntry | None:
        """Return the entry for ``key``.

        Args:
            key: Cache key
            allow_stale: Also return entries whose TTL has expired
        """

    @abstractmethod
    async def set(
        self,
        key: str,
        data: Sequence[TenderRecord],
        ttl: float,
        *,
        source_id: str,
        is_fallback: bool = False,
    ) -> CacheEntry:
        """Store ``data`` under ``key`` for ``ttl`` seconds, replacing any entry."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove an entry. Returns whether one existed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """All keys currently stored, expired ones included."""

    async def close(self) -> None:
        """Release store resources."""

    async def get_with_fallback(
        self,
        key: str,
        refresh_fn: RefreshFn,
        ttl: float,
        *,
        source_id: str,
    ) -> CacheEntry:
        """Return the live entry, or refresh, store and return a new one.

        Concurrent callers missing the same key share one refresh. A
        failing ``refresh_fn`` propagates its exception to every waiter
        and leaves the stored entry untouched.
        """
        entry = await self.get(key)
        if entry is not None:
            return entry

        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._refresh(key, refresh_fn, ttl, source_id))
            self._inflight[key] = future
            future.add_done_callback(lambda done: self._refresh_done(key, done))
        else:
            logger.debug(f"Joining in-flight refresh for {key}", extra={"source": source_id})

        # Shielded so a cancelled caller does not abort the shared refresh
        return await asyncio.shield(future)

    async def _refresh(
        self,
        key: str,
        refresh_fn: RefreshFn,
        ttl: float,
        source_id: str,
    ) -> CacheEntry:
        data = await refresh_fn()
        return await self.set(key, data, ttl, source_id=source_id)

    def _refresh_done(self, key: str, future: asyncio.Future[CacheEntry]) -> None:
        if self._inflight.get(key) is future:
            del self._inflight[key]
        if not future.cancelled():
            # Mark the exception as retrieved; waiters re-raise it themselves
            future.exception()
