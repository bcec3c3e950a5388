"""Tests for the HTTP API, wired end to end over a mocked transport."""

import httpx
import pytest
from fastapi.testclient import TestClient

from tenderwatch.api import create_app
from tenderwatch.core.backends import HttpBackend
from tenderwatch.core.cache import MemoryCacheStore
from tenderwatch.core.config.models import AppConfig, HttpConfig, SchedulerConfig
from tenderwatch.core.services import wire_services

from test_extract import BASAR_HTML

BASAR_URL = "https://www.rgukt.ac.in/tenders.html"


def campus_transport() -> httpx.MockTransport:
    """Basar answers with its listing; every other site is down."""

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == BASAR_URL:
            return httpx.Response(200, text=BASAR_HTML)
        return httpx.Response(503)

    return httpx.MockTransport(handler)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        http=HttpConfig(max_attempts=2, min_wait_seconds=0, max_wait_seconds=0, jitter=False),
        scheduler=SchedulerConfig(autostart=False, run_on_start=False),
        logging={"file": None, "rich_console": False},
    )


@pytest.fixture
def client(config):
    async def services_factory(app_config):
        backend = HttpBackend(app_config.http, transport=campus_transport())
        return wire_services(app_config, backend, MemoryCacheStore())

    with TestClient(create_app(config, services_factory=services_factory)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["schedulerRunning"] is False


# =============================================================================
# Tenders
# =============================================================================


def test_tenders_for_reachable_campus(client):
    first = client.get("/api/tenders/basar").json()

    assert first["success"] is True
    assert first["source"] == "basar"
    assert first["cached"] is False
    assert first["fallback"] is False
    assert first["totalTenders"] == 2
    assert first["data"][0]["name"] == "Canteen tender"
    assert first["data"][0]["downloadLinks"][0]["url"] == "https://www.rgukt.ac.in/tenders/canteen.pdf"

    second = client.get("/api/tenders/basar").json()
    assert second["cached"] is True
    assert second["data"] == first["data"]


def test_tenders_for_unreachable_campus_fall_back(client):
    response = client.get("/api/tenders/ongole")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["fallback"] is True
    assert body["totalTenders"] == 1
    assert body["data"][0]["downloadLinks"][0]["text"] == "Visit Official Site"
    assert "fallback data" in body["message"]


def test_tenders_paginated(client):
    body = client.get("/api/tenders/basar", params={"page": 2, "limit": 1}).json()

    assert [item["name"] for item in body["data"]] == ["Lab equipment"]
    assert body["totalCount"] == 2
    assert body["currentPage"] == 2
    assert body["totalPages"] == 2
    assert body["hasNextPage"] is False
    assert body["hasPrevPage"] is True


def test_invalid_pagination_values_fall_back_to_defaults(client):
    body = client.get("/api/tenders/basar", params={"page": "x", "limit": "-4"}).json()

    assert body["currentPage"] == 1
    assert body["limit"] == 1


def test_unknown_campus_is_404(client):
    response = client.get("/api/tenders/hyderabad")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Unknown source", "source": "hyderabad"}


# =============================================================================
# Admin
# =============================================================================


def test_admin_status(client):
    body = client.get("/api/admin/scraper", params={"action": "status"}).json()

    assert body["success"] is True
    assert body["isRunning"] is False
    assert {job["sourceId"] for job in body["jobs"]} == {
        "basar", "ongole", "rkvalley", "sklm", "nuzvidu", "rgukt-main",
    }
    assert all(job["status"] == "idle" for job in body["jobs"])


def test_admin_test_cache_defaults_to_basar(client):
    body = client.get("/api/admin/scraper", params={"action": "test-cache"}).json()

    assert body["campus"] == "basar"
    assert body["data"]["totalTenders"] == 2


def test_admin_invalid_query_action(client):
    response = client.get("/api/admin/scraper", params={"action": "explode"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_admin_start_and_stop(client):
    started = client.post("/api/admin/scraper", json={"action": "start"}).json()
    assert started["message"] == "Centralized scraper started"

    again = client.post("/api/admin/scraper", json={"action": "start"}).json()
    assert again["message"] == "Centralized scraper already running"
    assert client.get("/api/health").json()["schedulerRunning"] is True

    stopped = client.post("/api/admin/scraper", json={"action": "stop"}).json()
    assert stopped["message"] == "Centralized scraper stopped"

    not_running = client.post("/api/admin/scraper", json={"action": "stop"}).json()
    assert not_running["message"] == "Centralized scraper was not running"


def test_admin_force_run_single_campus(client):
    first = client.post("/api/admin/scraper", json={"action": "force-run", "campus": "basar"}).json()
    assert first["executed"] is True

    second = client.post("/api/admin/scraper", json={"action": "force-run", "campus": "basar"}).json()
    assert second["executed"] is False

    status = client.get("/api/admin/scraper", params={"action": "status"}).json()
    basar = next(job for job in status["jobs"] if job["sourceId"] == "basar")
    assert basar["status"] == "succeeded"
    assert basar["lastRecordCount"] == 2


def test_admin_force_run_all(client):
    body = client.post("/api/admin/scraper", json={"action": "force-run"}).json()

    assert body["executed"] == {
        "basar": True,
        "ongole": True,
        "rkvalley": True,
        "sklm": True,
        "nuzvidu": True,
    }

    status = client.get("/api/admin/scraper", params={"action": "status"}).json()
    states = {job["sourceId"]: job for job in status["jobs"]}
    assert states["basar"]["status"] == "succeeded"
    assert states["ongole"]["status"] == "failed"
    assert states["ongole"]["lastError"].startswith("http:")
    assert states["rgukt-main"]["status"] == "idle"


def test_admin_invalid_command(client):
    response = client.post("/api/admin/scraper", json={"action": "reboot"})

    assert response.status_code == 400
    assert "force-run" in response.json()["error"]
