"""Tests for the cache stores and single-flight refresh."""

import asyncio

import pytest

from tenderwatch.core.adapters import ScrapeError
from tenderwatch.core.cache import MemoryCacheStore, SqlCacheStore, build_cache_store, cache_key_for
from tenderwatch.core.config.models import CacheBackendType, CacheConfig
from tenderwatch.persistence import Database

from fakes import make_record

KEY = cache_key_for("basar")


@pytest.fixture(params=["memory", "sql"])
async def store(request, clock, tmp_path):
    if request.param == "memory":
        cache = MemoryCacheStore(clock=clock)
    else:
        cache = SqlCacheStore(Database(f"sqlite:///{tmp_path / 'cache.db'}"), clock=clock)
        await cache.initialize()
    yield cache
    await cache.close()


def test_cache_key_format():
    assert cache_key_for("ongole") == "tender:ongole"


async def test_set_then_get(store, clock):
    records = [make_record("Supply of chairs"), make_record("Lab reagents")]
    written = await store.set(KEY, records, ttl=900, source_id="basar")

    entry = await store.get(KEY)
    assert entry is not None
    assert entry.data == tuple(records)
    assert entry.source_id == "basar"
    assert entry.fetched_at == clock()
    assert entry.ttl_expires_at == written.ttl_expires_at
    assert not entry.is_fallback


async def test_expired_entries_need_allow_stale(store, clock):
    await store.set(KEY, [make_record("Old tender")], ttl=60, source_id="basar")
    clock.advance(seconds=61)

    assert await store.get(KEY) is None
    stale = await store.get(KEY, allow_stale=True)
    assert stale is not None
    assert stale.is_expired(clock())
    assert stale.data[0].name == "Old tender"


async def test_set_replaces_whole_entry(store):
    await store.set(KEY, [make_record("A tender"), make_record("B tender")], ttl=60, source_id="basar")
    await store.set(KEY, [make_record("C tender")], ttl=60, source_id="basar", is_fallback=True)

    entry = await store.get(KEY)
    assert [r.name for r in entry.data] == ["C tender"]
    assert entry.is_fallback


async def test_delete_and_keys(store):
    await store.set(KEY, [], ttl=60, source_id="basar")
    await store.set(cache_key_for("ongole"), [], ttl=60, source_id="ongole")

    assert sorted(await store.keys()) == ["tender:basar", "tender:ongole"]
    assert await store.delete(KEY) is True
    assert await store.delete(KEY) is False
    assert await store.keys() == ["tender:ongole"]


async def test_empty_result_is_cached(store):
    await store.set(KEY, [], ttl=60, source_id="basar")

    entry = await store.get(KEY)
    assert entry is not None
    assert entry.data == ()


# =============================================================================
# get_with_fallback
# =============================================================================


async def test_get_with_fallback_uses_live_entry(store):
    await store.set(KEY, [make_record("Cached tender")], ttl=60, source_id="basar")

    async def refresh():
        raise AssertionError("refresh must not run")

    entry = await store.get_with_fallback(KEY, refresh, ttl=60, source_id="basar")
    assert entry.data[0].name == "Cached tender"


async def test_get_with_fallback_refreshes_expired_entry(store, clock):
    await store.set(KEY, [make_record("Old tender")], ttl=60, source_id="basar")
    clock.advance(seconds=120)

    async def refresh():
        return [make_record("New tender")]

    entry = await store.get_with_fallback(KEY, refresh, ttl=60, source_id="basar")
    assert entry.data[0].name == "New tender"
    assert (await store.get(KEY)).data[0].name == "New tender"


async def test_concurrent_misses_share_one_refresh(memory_cache):
    calls = 0
    release = asyncio.Event()

    async def refresh():
        nonlocal calls
        calls += 1
        await release.wait()
        return [make_record("Fresh tender")]

    waiters = [
        asyncio.create_task(memory_cache.get_with_fallback(KEY, refresh, ttl=60, source_id="basar"))
        for _ in range(5)
    ]
    # Let every waiter reach the in-flight future before releasing the refresh
    for _ in range(20):
        await asyncio.sleep(0)
    release.set()
    entries = await asyncio.gather(*waiters)

    assert calls == 1
    assert all(entry.data[0].name == "Fresh tender" for entry in entries)


async def test_refresh_failure_reaches_every_waiter_and_keeps_old_entry(store, clock):
    await store.set(KEY, [make_record("Old tender")], ttl=60, source_id="basar")
    clock.advance(seconds=120)
    release = asyncio.Event()

    async def refresh():
        await release.wait()
        raise ScrapeError("basar", "connection refused")

    waiters = [
        asyncio.create_task(store.get_with_fallback(KEY, refresh, ttl=60, source_id="basar"))
        for _ in range(3)
    ]
    for _ in range(20):
        await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(result, ScrapeError) for result in results)
    stale = await store.get(KEY, allow_stale=True)
    assert stale.data[0].name == "Old tender"


async def test_cancelled_waiter_does_not_abort_shared_refresh(memory_cache):
    release = asyncio.Event()

    async def refresh():
        await release.wait()
        return [make_record("Fresh tender")]

    first = asyncio.create_task(memory_cache.get_with_fallback(KEY, refresh, ttl=60, source_id="basar"))
    second = asyncio.create_task(memory_cache.get_with_fallback(KEY, refresh, ttl=60, source_id="basar"))
    await asyncio.sleep(0)
    first.cancel()
    release.set()

    entry = await second
    assert entry.data[0].name == "Fresh tender"
    with pytest.raises(asyncio.CancelledError):
        await first


# =============================================================================
# Store specifics
# =============================================================================


async def test_memory_store_evicts_after_retention(clock):
    cache = MemoryCacheStore(stale_retention_seconds=300, clock=clock)
    await cache.set(KEY, [make_record("Old tender")], ttl=60, source_id="basar")
    await cache.set("tender:ongole", [make_record("Newer tender")], ttl=300, source_id="ongole")

    clock.advance(seconds=200)
    assert await cache.get(KEY, allow_stale=True) is not None

    # Listing keys drops entries past retention without reading them
    clock.advance(seconds=200)
    assert await cache.keys() == ["tender:ongole"]
    assert await cache.get(KEY, allow_stale=True) is None


async def test_sql_store_persists_across_instances(tmp_path, clock):
    url = f"sqlite:///{tmp_path / 'nested' / 'cache.db'}"
    first = SqlCacheStore(Database(url), clock=clock)
    await first.initialize()
    await first.set(KEY, [make_record("Persisted tender")], ttl=60, source_id="basar")
    await first.close()

    second = SqlCacheStore(Database(url), clock=clock)
    try:
        entry = await second.get(KEY)
        assert entry.data[0].name == "Persisted tender"
        assert entry.data[0].download_links[0].url.endswith("Persisted tender.pdf")
        assert entry.fetched_at.tzinfo is not None
    finally:
        await second.close()


async def test_build_cache_store_selects_backend(tmp_path):
    memory = await build_cache_store(CacheConfig())
    assert isinstance(memory, MemoryCacheStore)

    sql = await build_cache_store(
        CacheConfig(backend=CacheBackendType.SQL, database_url=f"sqlite:///{tmp_path / 'c.db'}")
    )
    try:
        assert isinstance(sql, SqlCacheStore)
        assert await sql.keys() == []
    finally:
        await sql.close()
