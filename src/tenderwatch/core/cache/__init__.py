"""Cache stores for scraped tender data."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenderwatch.core.config.models import CacheBackendType

from .base import CacheStore, cache_key_for
from .memory import MemoryCacheStore
from .sql import SqlCacheStore

if TYPE_CHECKING:
    from tenderwatch.core.config.models import CacheConfig


async def build_cache_store(config: CacheConfig) -> CacheStore:
    """Create (and for SQL, initialize) the configured cache store."""
    if config.backend == CacheBackendType.SQL:
        from tenderwatch.persistence.db import Database

        store = SqlCacheStore(Database(config.database_url))
        await store.initialize()
        return store
    return MemoryCacheStore(stale_retention_seconds=config.stale_retention_seconds)


__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "SqlCacheStore",
    "build_cache_store",
    "cache_key_for",
]
