"""
SQL-backed cache store for multi-instance deployments.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence

from sqlalchemy import delete, select

from tenderwatch.core.models import CacheEntry, TenderRecord
from tenderwatch.persistence.db import Database
from tenderwatch.persistence.models import CachedResult

from .base import CacheStore


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_entry(row: CachedResult) -> CacheEntry:
    return CacheEntry(
        source_id=row.source_id,
        data=tuple(TenderRecord.from_dict(item) for item in row.payload or []),
        fetched_at=_as_utc(row.fetched_at),
        ttl_expires_at=_as_utc(row.expires_at),
        is_fallback=row.is_fallback,
    )


class SqlCacheStore(CacheStore):
    """Cache store keeping one row per key in a SQLAlchemy database."""

    def __init__(
        self,
        database: Database,
        clock: Callable[[], datetime] | None = None,
        owns_database: bool = True,
    ) -> None:
        super().__init__(clock)
        self.database = database
        self._owns_database = owns_database

    async def initialize(self) -> None:
        """Create the cache table if needed."""
        await self.database.create_all()

    async def get(self, key: str, allow_stale: bool = False) -> CacheEntry | None:
        async with self.database.session() as session:
            row = await session.get(CachedResult, key)
            if row is None:
                return None
            entry = _row_to_entry(row)

        if entry.is_expired(self.now()) and not allow_stale:
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

        # Single upsert in one transaction; readers see the old row until commit
        async with self.database.session() as session:
            await session.merge(
                CachedResult(
                    key=key,
                    source_id=source_id,
                    payload=entry.to_payload(),
                    fetched_at=_as_utc(entry.fetched_at),
                    expires_at=_as_utc(entry.ttl_expires_at),
                    is_fallback=is_fallback,
                )
            )
        return entry

    async def delete(self, key: str) -> bool:
        async with self.database.session() as session:
            result = await session.execute(delete(CachedResult).where(CachedResult.key == key))
            return bool(result.rowcount)

    async def keys(self) -> list[str]:
        async with self.database.session() as session:
            result = await session.execute(select(CachedResult.key).order_by(CachedResult.key))
            return list(result.scalars())

    async def close(self) -> None:
        if self._owns_database:
            await self.database.dispose()
