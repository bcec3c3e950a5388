"""
In-process cache store.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Sequence

from tenderwatch.core.models import CacheEntry, TenderRecord

from .base import CacheStore


class MemoryCacheStore(CacheStore):
    """Dict-backed store for single-process deployments.

    Expired entries are kept for stale reads. When
    ``stale_retention_seconds`` is set, entries older than their expiry
    plus that horizon are evicted on access and when keys are listed.
    """

    def __init__(
        self,
        stale_retention_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(clock)
        self.stale_retention_seconds = stale_retention_seconds
        self._entries: dict[str, CacheEntry] = {}

    def _is_evictable(self, entry: CacheEntry, now: datetime) -> bool:
        if self.stale_retention_seconds is None:
            return False
        return now >= entry.ttl_expires_at + timedelta(seconds=self.stale_retention_seconds)

    async def get(self, key: str, allow_stale: bool = False) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self.now()
        if self._is_evictable(entry, now):
            self._entries.pop(key, None)
            return None
        if entry.is_expired(now) and not allow_stale:
            return None
        return entry

    async def set(
        self,
        key: str,
        data: Sequence[TenderRecord],
        ttl: float,
        *,
        source_id: str,
        is_fallback: bool = False,
    ) -> CacheEntry:
        entry = self.make_entry(data, ttl, source_id=source_id, is_fallback=is_fallback)
        self._entries[key] = entry
        return entry

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self) -> list[str]:
        now = self.now()
        for key in [k for k, entry in self._entries.items() if self._is_evictable(entry, now)]:
            del self._entries[key]
        return list(self._entries)
