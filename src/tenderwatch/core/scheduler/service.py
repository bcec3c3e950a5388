"""
APScheduler integration for TenderWatch.

The orchestrator owns one interval job per source, the per-source job
state, and the asyncio tasks that perform runs. Runs are spawned as
orchestrator-owned tasks so stopping the scheduler never cancels a run
that is already in flight.
"""

from __future__ import annotations

import asyncio
import os
import socket
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Iterable, Mapping
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tenderwatch.core.adapters import ScrapeError
from tenderwatch.core.cache import cache_key_for
from tenderwatch.core.logging import get_contextual_logger, get_logger
from tenderwatch.core.models import JobStatus, SourceJobState, utcnow

from .locks import RunLockRegistry

if TYPE_CHECKING:
    from tenderwatch.core.adapters import SiteAdapter
    from tenderwatch.core.cache import CacheStore
    from tenderwatch.core.config.models import SchedulerConfig, SourceConfig

logger = get_logger("scheduler")


def failure_backoff_minutes(consecutive_failures: int, base: int, maximum: int) -> int:
    """Delay before the next scheduled run after ``consecutive_failures`` failures."""
    return min(base * 2**consecutive_failures, maximum)


class ScraperOrchestrator:
    """Schedules, runs and tracks scrape jobs for every configured source."""

    def __init__(
        self,
        sources: Iterable[SourceConfig],
        adapters: Mapping[str, SiteAdapter],
        cache: CacheStore,
        config: SchedulerConfig,
        cache_ttl_seconds: float,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            sources: Source configurations (disabled ones get no timer)
            adapters: Site adapter per source id
            cache: Store receiving successful results
            config: Scheduler timing policy
            cache_ttl_seconds: TTL for entries written after a run
            clock: Time source (tests inject a fake clock)
        """
        self._sources = {source.id: source for source in sources}
        missing = sorted(set(self._sources) - set(adapters))
        if missing:
            raise ValueError(f"No adapter for sources: {', '.join(missing)}")

        self._adapters = dict(adapters)
        self._cache = cache
        self.config = config
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock or utcnow

        self._holder_id = f"{socket.gethostname()}-{os.getpid()}-{uuid4().hex[:8]}"
        self._locks = RunLockRegistry(clock=self._clock)
        self._scheduler: AsyncIOScheduler | None = None
        self._tasks: dict[str, asyncio.Task[None]] = {}

        self._states = {
            source.id: SourceJobState(
                source_id=source.id,
                name=source.name,
                priority=source.priority,
                interval_minutes=source.scrape_interval_minutes,
            )
            for source in self._sources.values()
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        """Whether timers are active."""
        return self._scheduler is not None and self._scheduler.running

    @property
    def min_interval(self) -> timedelta:
        return timedelta(seconds=self.config.min_interval_seconds)

    def enabled_source_ids(self) -> list[str]:
        """Enabled sources, highest priority first."""
        enabled = [source for source in self._sources.values() if source.enabled]
        return [source.id for source in sorted(enabled, key=lambda s: s.priority)]

    def start(self) -> bool:
        """Start one interval timer per enabled source.

        Must be called from a running event loop. Calling it again while
        started is a no-op.

        Returns:
            True if timers were started, False if already running
        """
        if self.is_running:
            logger.debug("Scheduler already running")
            return False

        scheduler = AsyncIOScheduler(
            event_loop=asyncio.get_running_loop(),
            timezone=timezone.utc,
        )
        now = datetime.now(timezone.utc)

        for source_id in self.enabled_source_ids():
            source = self._sources[source_id]
            job_options: dict[str, datetime] = {}
            if self.config.run_on_start:
                job_options["next_run_time"] = now

            scheduler.add_job(
                self._on_tick,
                IntervalTrigger(minutes=source.scrape_interval_minutes, timezone=timezone.utc),
                id=source_id,
                name=f"scrape:{source_id}",
                args=[source_id],
                max_instances=1,
                coalesce=True,
                replace_existing=True,
                misfire_grace_time=60,
                **job_options,
            )

        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Scheduler started with {len(scheduler.get_jobs())} source jobs")
        return True

    def stop(self) -> bool:
        """Cancel all timers. In-flight runs are left to finish.

        Returns:
            True if timers were stopped, False if not running
        """
        if self._scheduler is None:
            return False

        scheduler, self._scheduler = self._scheduler, None
        if scheduler.running:
            scheduler.shutdown(wait=False)

        for state in self._states.values():
            state.next_scheduled_run_at = None

        logger.info(f"Scheduler stopped ({len(self._tasks)} runs still in flight)")
        return True

    async def wait_idle(self) -> None:
        """Wait until no run is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    # =========================================================================
    # Triggering
    # =========================================================================

    async def _on_tick(self, source_id: str) -> None:
        """Timer callback. Spawns the run and returns immediately."""
        self._spawn(source_id, forced=False)

    def _try_begin(
        self,
        source_id: str,
        forced: bool,
        enforce_min_interval: bool = True,
    ) -> str | None:
        """Check eligibility and mark the source running.

        Contains no awaits, so two callers can never both pass.

        Returns:
            The run id when the run may start, None when rejected
        """
        state = self._states.get(source_id)
        if state is None:
            logger.warning(f"Unknown source: {source_id}")
            return None

        if state.is_running or self._locks.is_locked(source_id):
            logger.info("Run skipped: already running", extra={"source": source_id})
            return None

        now = self._clock()
        if (
            enforce_min_interval
            and state.last_run_at is not None
            and now - state.last_run_at < self.min_interval
        ):
            logger.info("Run skipped: minimum interval not elapsed", extra={"source": source_id})
            return None

        if not forced and state.backoff_until is not None and now < state.backoff_until:
            logger.info(
                f"Run skipped: backing off until {state.backoff_until.isoformat()}",
                extra={"source": source_id},
            )
            return None

        run_id = uuid4().hex[:12]
        if not self._locks.acquire(source_id, f"{self._holder_id}:{run_id}"):
            return None

        state.status = JobStatus.RUNNING
        state.last_run_at = now
        state.next_eligible_run_at = now + self.min_interval
        return run_id

    def _spawn(
        self,
        source_id: str,
        forced: bool,
        enforce_min_interval: bool = True,
    ) -> asyncio.Task[None] | None:
        run_id = self._try_begin(source_id, forced, enforce_min_interval)
        if run_id is None:
            return None

        task = asyncio.create_task(self._run(source_id, run_id), name=f"scrape:{source_id}")
        self._tasks[source_id] = task
        task.add_done_callback(lambda done: self._task_done(source_id, done))
        return task

    def _task_done(self, source_id: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(source_id) is task:
            del self._tasks[source_id]

    def trigger(self, source_id: str) -> bool:
        """Start a forced run in the background without waiting for it."""
        return self._spawn(source_id, forced=True) is not None

    async def force_run(self, source_id: str) -> bool:
        """Run one source now, outside its schedule.

        Rejected (False) when the source is unknown, already running, or
        ran less than the minimum interval ago. Otherwise waits for the
        run to finish and returns True whatever its outcome.
        """
        task = self._spawn(source_id, forced=True)
        if task is None:
            return False
        await asyncio.gather(asyncio.shield(task), return_exceptions=True)
        return True

    async def run_or_join(self, source_id: str) -> None:
        """Run a source for a cache miss, or wait for the run already in flight.

        Skips the minimum interval and failure backoff but never starts a
        second run while one is in flight.
        """
        task = self._spawn(source_id, forced=True, enforce_min_interval=False)
        if task is None:
            task = self._tasks.get(source_id)
        if task is not None:
            await asyncio.gather(asyncio.shield(task), return_exceptions=True)

    async def force_run_all(self) -> dict[str, bool]:
        """Force a run of every enabled source concurrently.

        Returns:
            Mapping of source id to whether its run was started
        """
        source_ids = self.enabled_source_ids()
        results = await asyncio.gather(
            *(self.force_run(source_id) for source_id in source_ids),
            return_exceptions=True,
        )

        started: dict[str, bool] = {}
        for source_id, result in zip(source_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Forced run crashed: {result!r}", extra={"source": source_id})
                started[source_id] = False
            else:
                started[source_id] = result
        return started

    # =========================================================================
    # Run
    # =========================================================================

    async def _run(self, source_id: str, run_id: str) -> None:
        """Scrape one source and record the outcome. Never raises."""
        state = self._states[source_id]
        log = get_contextual_logger("scheduler", source=source_id, run_id=run_id)
        log.info("Run started")
        start = time.monotonic()

        try:
            records = await self._adapters[source_id].scrape()
            await self._cache.set(
                cache_key_for(source_id),
                records,
                self.cache_ttl_seconds,
                source_id=source_id,
            )
        except asyncio.CancelledError:
            self._record_failure(state, "cancelled: run was cancelled", time.monotonic() - start)
            log.warning("Run cancelled")
            raise
        except ScrapeError as e:
            self._record_failure(state, f"{e.kind}: {e.cause}", time.monotonic() - start)
            log.error(f"Run failed ({e.kind}): {e.cause}")
        except Exception as e:
            self._record_failure(state, f"unexpected: {e!r}", time.monotonic() - start)
            log.exception(f"Run crashed: {e!r}")
        else:
            self._record_success(state, len(records), time.monotonic() - start)
            log.info(f"Run succeeded with {len(records)} tenders")
        finally:
            self._locks.release(source_id, f"{self._holder_id}:{run_id}")

    def _record_success(self, state: SourceJobState, count: int, duration: float) -> None:
        state.status = JobStatus.SUCCEEDED
        state.last_success_at = self._clock()
        state.last_error = None
        state.success_count += 1
        state.consecutive_failures = 0
        state.backoff_until = None
        state.last_record_count = count
        state.last_duration_seconds = round(duration, 3)

    def _record_failure(self, state: SourceJobState, error: str, duration: float) -> None:
        state.status = JobStatus.FAILED
        state.last_error = error
        state.error_count += 1
        state.consecutive_failures += 1
        state.last_duration_seconds = round(duration, 3)

        delay = failure_backoff_minutes(
            state.consecutive_failures,
            self.config.failure_backoff_base_minutes,
            self.config.failure_backoff_max_minutes,
        )
        state.backoff_until = self._clock() + timedelta(minutes=delay)

    # =========================================================================
    # Observability
    # =========================================================================

    def is_source_running(self, source_id: str) -> bool:
        state = self._states.get(source_id)
        return state is not None and state.is_running

    def get_job_state(self, source_id: str) -> SourceJobState | None:
        state = self._states.get(source_id)
        return replace(state) if state is not None else None

    def get_job_statuses(self) -> dict[str, SourceJobState]:
        """Snapshot of every source's job state."""
        if self._scheduler is not None:
            for job in self._scheduler.get_jobs():
                state = self._states.get(job.id)
                if state is not None:
                    state.next_scheduled_run_at = job.next_run_time
        return {source_id: replace(state) for source_id, state in self._states.items()}
