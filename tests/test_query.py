"""Tests for the query facade's fallback chain."""

import asyncio
from datetime import timedelta

import pytest

from tenderwatch.core.cache import cache_key_for
from tenderwatch.core.fallback import FALLBACK_MESSAGE, PLACEHOLDER_NAME, FallbackProvider
from tenderwatch.core.models import JobStatus, isoformat
from tenderwatch.core.query import UNKNOWN_SOURCE, QueryFacade
from tenderwatch.core.scheduler import ScraperOrchestrator

from fakes import FakeAdapter, make_record, make_source

CAMPUSES = ["basar", "ongole", "sklm", "rkvalley"]


@pytest.fixture
def sources():
    return [make_source(source_id) for source_id in CAMPUSES]


@pytest.fixture
def adapters():
    return {
        "basar": FakeAdapter("basar", [make_record(f"Basar tender {i}") for i in range(12)]),
        "ongole": FakeAdapter("ongole", [make_record("Ongole tender")]),
        "sklm": FakeAdapter("sklm", [make_record("Sklm tender")]),
        "rkvalley": FakeAdapter("rkvalley", [make_record("Fresh rkvalley tender")]),
    }


@pytest.fixture
def orchestrator(sources, adapters, memory_cache, scheduler_config, cache_config, clock):
    return ScraperOrchestrator(
        sources=sources,
        adapters=adapters,
        cache=memory_cache,
        config=scheduler_config,
        cache_ttl_seconds=cache_config.ttl_seconds,
        clock=clock,
    )


@pytest.fixture
def make_facade(sources, adapters, memory_cache, cache_config, query_config, clock):
    def build(orchestrator=None, **query_overrides):
        return QueryFacade(
            adapters=adapters,
            cache=memory_cache,
            fallback=FallbackProvider(sources, today=lambda: clock().date()),
            cache_config=cache_config,
            query_config=query_config.model_copy(update=query_overrides),
            orchestrator=orchestrator,
            clock=clock,
        )

    return build


# =============================================================================
# Fresh data
# =============================================================================


async def test_scraped_data_is_served_from_cache(orchestrator, make_facade, adapters):
    await orchestrator.force_run("basar")
    facade = make_facade(orchestrator)

    response = await facade.get_cached_tender_data("basar")

    assert response.success is True
    assert response.cached is True
    assert response.fallback is False
    assert response.total_tenders == 12
    assert list(response.data) == adapters["basar"].records
    assert adapters["basar"].calls == 1


async def test_miss_refreshes_once_then_serves_cache(make_facade, adapters, clock):
    facade = make_facade()

    first = await facade.get_cached_tender_data("sklm")
    assert first.success is True
    assert first.cached is False
    assert [r.name for r in first.data] == ["Sklm tender"]
    assert first.timestamp == clock()

    clock.advance(seconds=899)
    second = await facade.get_cached_tender_data("sklm")
    assert second.cached is True
    assert second.data == first.data
    assert adapters["sklm"].calls == 1


async def test_concurrent_misses_scrape_once(make_facade, adapters):
    gate = asyncio.Event()
    adapters["sklm"].gate = gate
    facade = make_facade()

    readers = [asyncio.create_task(facade.get_cached_tender_data("sklm")) for _ in range(4)]
    await adapters["sklm"].started.wait()
    gate.set()
    responses = await asyncio.gather(*readers)

    assert adapters["sklm"].calls == 1
    assert all(r.data[0].name == "Sklm tender" for r in responses)


async def test_miss_joins_in_flight_scheduled_run(orchestrator, make_facade, adapters):
    gate = asyncio.Event()
    adapters["ongole"].gate = gate
    orchestrator.trigger("ongole")
    await adapters["ongole"].started.wait()
    facade = make_facade(orchestrator)

    reader = asyncio.create_task(facade.get_cached_tender_data("ongole"))
    await asyncio.sleep(0)
    gate.set()
    response = await reader

    assert response.data[0].name == "Ongole tender"
    assert adapters["ongole"].calls == 1


async def test_miss_refresh_is_an_orchestrator_run(orchestrator, make_facade, adapters):
    gate = asyncio.Event()
    adapters["sklm"].gate = gate
    facade = make_facade(orchestrator)

    reader = asyncio.create_task(facade.get_cached_tender_data("sklm"))
    await adapters["sklm"].started.wait()
    assert orchestrator.is_source_running("sklm")

    # Neither a forced run nor a timer tick may start a second scrape
    assert await orchestrator.force_run("sklm") is False
    await orchestrator._on_tick("sklm")
    gate.set()
    response = await reader

    assert response.cached is False
    assert response.data[0].name == "Sklm tender"
    assert adapters["sklm"].calls == 1
    assert adapters["sklm"].max_active == 1
    state = orchestrator.get_job_state("sklm")
    assert state.status is JobStatus.SUCCEEDED
    assert state.last_record_count == 1


async def test_concurrent_misses_share_one_orchestrator_run(orchestrator, make_facade, adapters):
    gate = asyncio.Event()
    adapters["basar"].gate = gate
    facade = make_facade(orchestrator)

    readers = [asyncio.create_task(facade.get_cached_tender_data("basar")) for _ in range(3)]
    await adapters["basar"].started.wait()
    gate.set()
    responses = await asyncio.gather(*readers)

    assert adapters["basar"].calls == 1
    assert all(r.total_tenders == 12 for r in responses)


async def test_miss_after_cooldown_ignores_minimum_interval(orchestrator, make_facade, adapters, clock):
    adapters["ongole"].fail_with()
    await orchestrator.force_run("ongole")
    facade = make_facade(orchestrator)
    assert (await facade.get_cached_tender_data("ongole")).fallback is True

    # Past the cooldown but inside the scheduler's minimum interval
    clock.advance(seconds=121)
    adapters["ongole"].error = None
    response = await facade.get_cached_tender_data("ongole")

    assert response.fallback is False
    assert response.data[0].name == "Ongole tender"
    assert adapters["ongole"].calls == 2


# =============================================================================
# Fallback chain
# =============================================================================


async def test_failed_source_without_cache_gets_placeholder(orchestrator, make_facade, adapters, clock):
    adapters["ongole"].fail_with("timeout", "Timed out after 15.0s")
    await orchestrator.force_run("ongole")
    assert orchestrator.get_job_state("ongole").status is JobStatus.FAILED
    facade = make_facade(orchestrator)

    response = await facade.get_cached_tender_data("ongole")

    assert response.success is True
    assert response.fallback is True
    assert response.cached is False
    assert response.message == FALLBACK_MESSAGE
    (placeholder,) = response.data
    assert placeholder.name == PLACEHOLDER_NAME
    assert placeholder.posted_date == clock().date().isoformat()
    assert placeholder.download_links[0].url == "https://ongole.example.edu/tenders.html"
    # The failed run is recent, so the facade does not scrape again
    assert adapters["ongole"].calls == 1


async def test_refresh_failure_falls_back_and_caches_placeholder(make_facade, adapters, memory_cache):
    adapters["basar"].fail_with()
    facade = make_facade()

    response = await facade.get_cached_tender_data("basar")
    assert response.fallback is True
    assert response.total_tenders == 1

    entry = await memory_cache.get(cache_key_for("basar"))
    assert entry.is_fallback
    assert entry.ttl_expires_at - entry.fetched_at == timedelta(seconds=60)


async def test_cooldown_limits_rescrapes(make_facade, adapters, clock):
    adapters["basar"].fail_with()
    facade = make_facade()

    await facade.get_cached_tender_data("basar")
    clock.advance(seconds=90)
    response = await facade.get_cached_tender_data("basar")
    assert response.fallback is True
    assert adapters["basar"].calls == 1

    clock.advance(seconds=31)
    adapters["basar"].error = None
    recovered = await facade.get_cached_tender_data("basar")
    assert recovered.fallback is False
    assert recovered.cached is False
    assert adapters["basar"].calls == 2


async def test_stale_data_served_when_refresh_fails(make_facade, adapters, memory_cache, clock):
    await memory_cache.set(
        cache_key_for("rkvalley"), [make_record("Old rkvalley tender")], ttl=3600, source_id="rkvalley"
    )
    fetched_at = clock()
    clock.advance(minutes=120)
    adapters["rkvalley"].fail_with("network", "Name or service not known")
    facade = make_facade(stale_while_revalidate=False)

    response = await facade.get_cached_tender_data("rkvalley")

    assert response.success is True
    assert response.cached is True
    assert response.fallback is False
    assert response.refreshing is False
    assert response.data[0].name == "Old rkvalley tender"
    assert response.timestamp == fetched_at
    assert adapters["rkvalley"].calls == 1

    # Real data is never replaced by a placeholder
    entry = await memory_cache.get(cache_key_for("rkvalley"), allow_stale=True)
    assert not entry.is_fallback


async def test_stale_data_served_immediately_with_background_refresh(
    orchestrator, make_facade, adapters, memory_cache, clock
):
    await memory_cache.set(
        cache_key_for("rkvalley"), [make_record("Old rkvalley tender")], ttl=3600, source_id="rkvalley"
    )
    clock.advance(minutes=120)
    adapters["rkvalley"].fail_with("network", "Name or service not known")
    facade = make_facade(orchestrator)

    response = await facade.get_cached_tender_data("rkvalley")

    assert response.cached is True
    assert response.refreshing is True
    assert response.data[0].name == "Old rkvalley tender"

    await orchestrator.wait_idle()
    assert orchestrator.get_job_state("rkvalley").status is JobStatus.FAILED

    # Still stale after the failed run, and no new refresh during the cooldown
    again = await facade.get_cached_tender_data("rkvalley")
    assert again.data[0].name == "Old rkvalley tender"
    assert again.refreshing is False
    assert adapters["rkvalley"].calls == 1


async def test_background_refresh_without_orchestrator(make_facade, adapters, memory_cache, clock):
    await memory_cache.set(
        cache_key_for("rkvalley"), [make_record("Old rkvalley tender")], ttl=60, source_id="rkvalley"
    )
    clock.advance(seconds=61)
    facade = make_facade()

    response = await facade.get_cached_tender_data("rkvalley")
    assert response.refreshing is True
    assert response.data[0].name == "Old rkvalley tender"

    await facade.wait_background()
    refreshed = await facade.get_cached_tender_data("rkvalley")
    assert refreshed.data[0].name == "Fresh rkvalley tender"
    assert refreshed.cached is True


async def test_expired_placeholder_is_replaced_once_source_recovers(make_facade, adapters, clock):
    adapters["sklm"].fail_with()
    facade = make_facade()
    assert (await facade.get_cached_tender_data("sklm")).fallback is True

    adapters["sklm"].error = None
    clock.advance(seconds=121)
    response = await facade.get_cached_tender_data("sklm")

    assert response.fallback is False
    assert response.data[0].name == "Sklm tender"


async def test_unknown_source(make_facade):
    response = await make_facade().get_cached_tender_data("hyderabad")

    assert response.success is False
    assert response.error == UNKNOWN_SOURCE
    assert response.data == ()
    assert response.to_dict()["error"] == UNKNOWN_SOURCE


# =============================================================================
# Serialisation
# =============================================================================


async def test_response_dict_shape(orchestrator, make_facade, clock):
    await orchestrator.force_run("basar")
    response = await make_facade(orchestrator).get_cached_tender_data("basar")

    data = response.to_dict()
    assert data["success"] is True
    assert data["source"] == "basar"
    assert data["totalTenders"] == 12
    assert data["cached"] is True
    assert data["fallback"] is False
    assert data["timestamp"] == isoformat(clock())
    assert data["timestamp"].endswith("Z")
    assert "refreshing" not in data
    assert data["data"][0] == {
        "name": "Basar tender 0",
        "postedDate": "2024-05-30",
        "closingDate": "2024-06-15",
        "downloadLinks": [{"text": "Download", "url": "https://example.edu/Basar tender 0.pdf"}],
    }


async def test_paginated_response(orchestrator, make_facade):
    await orchestrator.force_run("basar")
    response = await make_facade(orchestrator).get_cached_tender_data("basar")

    page = response.to_paginated_dict(page=3, limit=5)
    assert [item["name"] for item in page["data"]] == ["Basar tender 10", "Basar tender 11"]
    assert page["totalCount"] == 12
    assert page["totalPages"] == 3
    assert page["hasNextPage"] is False
    assert page["hasPrevPage"] is True
    assert page["totalTenders"] == 12
