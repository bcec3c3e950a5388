"""
Read path used by the API routes.

``QueryFacade.get_cached_tender_data`` always answers with a response
object for a known source. Fresh entries are served as-is; expired
entries are served while a refresh runs in the background; a miss
refreshes synchronously and degrades to the static placeholder.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Mapping

from tenderwatch.core.cache import cache_key_for
from tenderwatch.core.fallback import FALLBACK_MESSAGE
from tenderwatch.core.logging import get_logger
from tenderwatch.core.models import CacheEntry, JobStatus, TenderRecord, isoformat, utcnow
from tenderwatch.core.pagination import paginate

if TYPE_CHECKING:
    from tenderwatch.core.adapters import SiteAdapter
    from tenderwatch.core.cache import CacheStore
    from tenderwatch.core.config.models import CacheConfig, QueryConfig
    from tenderwatch.core.fallback import FallbackProvider
    from tenderwatch.core.scheduler import ScraperOrchestrator

logger = get_logger("query")

UNKNOWN_SOURCE = "Unknown source"


@dataclass
class TenderResponse:
    """Uniform response for one source's tender data."""

    success: bool
    source: str
    data: tuple[TenderRecord, ...] = ()
    timestamp: datetime = field(default_factory=utcnow)
    cached: bool = False
    fallback: bool = False
    refreshing: bool = False
    error: str | None = None
    message: str | None = None

    @property
    def total_tenders(self) -> int:
        return len(self.data)

    def _meta(self) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "success": self.success,
            "timestamp": isoformat(self.timestamp),
            "source": self.source,
            "totalTenders": self.total_tenders,
            "cached": self.cached,
            "fallback": self.fallback,
        }
        if self.refreshing:
            meta["refreshing"] = True
        if self.error:
            meta["error"] = self.error
        if self.message:
            meta["message"] = self.message
        return meta

    def to_dict(self) -> dict[str, Any]:
        return {**self._meta(), "data": [record.to_dict() for record in self.data]}

    def to_paginated_dict(self, page: int, limit: int) -> dict[str, Any]:
        """Response metadata plus one page of the data."""
        return {**self._meta(), **paginate(self.data, page, limit).to_dict()}


class QueryFacade:
    """Serve tender data from the cache, refreshing or degrading as needed."""

    def __init__(
        self,
        adapters: Mapping[str, SiteAdapter],
        cache: CacheStore,
        fallback: FallbackProvider,
        cache_config: CacheConfig,
        query_config: QueryConfig,
        orchestrator: ScraperOrchestrator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._adapters = dict(adapters)
        self._cache = cache
        self._fallback = fallback
        self.cache_config = cache_config
        self.query_config = query_config
        self._orchestrator = orchestrator
        self._clock = clock or utcnow
        self._last_refresh_failure: dict[str, datetime] = {}
        self._background: set[asyncio.Task[CacheEntry | None]] = set()

    def knows(self, source_id: str) -> bool:
        return source_id in self._adapters

    async def get_cached_tender_data(self, source_id: str) -> TenderResponse:
        """Current tender data for a source. Never raises for a known source."""
        if source_id not in self._adapters:
            return TenderResponse(success=False, source=source_id, error=UNKNOWN_SOURCE)

        key = cache_key_for(source_id)
        entry = await self._read(key, source_id)
        now = self._clock()

        if entry is not None and not entry.is_expired(now):
            return self._from_entry(entry, cached=True)

        if entry is not None and not entry.is_fallback and self.query_config.stale_while_revalidate:
            refreshing = self._revalidate_in_background(key, source_id, now)
            return self._from_entry(entry, cached=True, refreshing=refreshing)

        if not self._in_cooldown(source_id, now):
            fresh = await self._refresh(key, source_id)
            if fresh is not None:
                return self._from_entry(fresh, cached=False)

        if entry is not None and not entry.is_fallback:
            logger.info(
                f"Serving stale data ({entry.age_seconds(now):.0f}s old)",
                extra={"source": source_id},
            )
            return self._from_entry(entry, cached=True)

        return await self._serve_fallback(key, source_id, entry)

    # =========================================================================
    # Steps
    # =========================================================================

    async def _read(self, key: str, source_id: str) -> CacheEntry | None:
        try:
            return await self._cache.get(key, allow_stale=True)
        except Exception as e:
            logger.error(f"Cache read failed: {e!r}", extra={"source": source_id})
            return None

    def _revalidate_in_background(self, key: str, source_id: str, now: datetime) -> bool:
        """Start a non-blocking refresh for a stale entry.

        Returns whether a refresh is now in flight.
        """
        if self._in_cooldown(source_id, now):
            return False

        if self._orchestrator is not None:
            if self._orchestrator.is_source_running(source_id):
                return True
            return self._orchestrator.trigger(source_id)

        if any(task.get_name() == f"revalidate:{source_id}" for task in self._background):
            return True
        task = asyncio.create_task(self._refresh(key, source_id), name=f"revalidate:{source_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def wait_background(self) -> None:
        """Wait for background refreshes started without an orchestrator."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _in_cooldown(self, source_id: str, now: datetime) -> bool:
        cooldown = timedelta(seconds=self.query_config.refresh_cooldown_seconds)
        if not cooldown:
            return False

        failed_at = self._last_refresh_failure.get(source_id)
        if failed_at is not None and now - failed_at < cooldown:
            return True

        if self._orchestrator is not None:
            state = self._orchestrator.get_job_state(source_id)
            if (
                state is not None
                and state.status is JobStatus.FAILED
                and state.last_run_at is not None
                and now - state.last_run_at < cooldown
            ):
                return True
        return False

    async def _refresh(self, key: str, source_id: str) -> CacheEntry | None:
        """Refresh a source, returning the new entry or None on failure.

        With an orchestrator wired the refresh is one of its runs, so it
        never overlaps a scheduled or forced scrape of the same source.
        Otherwise it goes through the cache's single-flight path.
        """
        if self._orchestrator is not None:
            return await self._refresh_through_orchestrator(self._orchestrator, key, source_id)

        adapter = self._adapters[source_id]
        try:
            entry = await self._cache.get_with_fallback(
                key,
                adapter.scrape,
                self.cache_config.ttl_seconds,
                source_id=source_id,
            )
        except Exception as e:
            self._last_refresh_failure[source_id] = self._clock()
            kind = getattr(e, "kind", "unexpected")
            logger.warning(f"Refresh failed ({kind}): {e}", extra={"source": source_id})
            return None

        if entry.is_fallback:
            return None
        self._last_refresh_failure.pop(source_id, None)
        return entry

    async def _refresh_through_orchestrator(
        self,
        orchestrator: ScraperOrchestrator,
        key: str,
        source_id: str,
    ) -> CacheEntry | None:
        await orchestrator.run_or_join(source_id)

        entry = await self._read(key, source_id)
        if entry is not None and not entry.is_fallback and not entry.is_expired(self._clock()):
            self._last_refresh_failure.pop(source_id, None)
            return entry

        self._last_refresh_failure[source_id] = self._clock()
        state = orchestrator.get_job_state(source_id)
        error = state.last_error if state is not None else None
        logger.warning(f"Refresh failed: {error}", extra={"source": source_id})
        return None

    async def _serve_fallback(
        self,
        key: str,
        source_id: str,
        existing: CacheEntry | None,
    ) -> TenderResponse:
        placeholders = self._fallback.get_fallback(source_id)

        # Placeholders only fill an empty slot; an expired placeholder is left to lapse
        if existing is None:
            try:
                await self._cache.set(
                    key,
                    placeholders,
                    self.cache_config.fallback_ttl_seconds,
                    source_id=source_id,
                    is_fallback=True,
                )
            except Exception as e:
                logger.error(f"Cache write failed: {e!r}", extra={"source": source_id})

        logger.info("Serving fallback placeholder", extra={"source": source_id})
        return TenderResponse(
            success=True,
            source=source_id,
            data=tuple(placeholders),
            timestamp=self._clock(),
            cached=False,
            fallback=True,
            message=FALLBACK_MESSAGE,
        )

    def _from_entry(
        self,
        entry: CacheEntry,
        cached: bool,
        refreshing: bool = False,
    ) -> TenderResponse:
        return TenderResponse(
            success=True,
            source=entry.source_id,
            data=entry.data,
            timestamp=entry.fetched_at,
            cached=cached,
            fallback=entry.is_fallback,
            refreshing=refreshing,
            message=FALLBACK_MESSAGE if entry.is_fallback else None,
        )
