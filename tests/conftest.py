"""Shared fixtures."""

from __future__ import annotations

import pytest

from tenderwatch.core.cache import MemoryCacheStore
from tenderwatch.core.config.models import (
    CacheConfig,
    HttpConfig,
    QueryConfig,
    SchedulerConfig,
)

from fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def fast_http_config() -> HttpConfig:
    """Three attempts, no waiting between them."""
    return HttpConfig(
        timeout_seconds=1.0,
        max_attempts=3,
        min_wait_seconds=0,
        max_wait_seconds=0,
        backoff_multiplier=0,
        jitter=False,
    )


@pytest.fixture
def scheduler_config() -> SchedulerConfig:
    return SchedulerConfig(
        autostart=False,
        run_on_start=False,
        min_interval_seconds=300,
        failure_backoff_base_minutes=30,
        failure_backoff_max_minutes=240,
    )


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig(ttl_seconds=900, fallback_ttl_seconds=60)


@pytest.fixture
def query_config() -> QueryConfig:
    return QueryConfig(stale_while_revalidate=True, refresh_cooldown_seconds=120)
