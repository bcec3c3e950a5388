"""Tests for site adapters, including multi-URL enumeration."""

import httpx
import pytest

from tenderwatch.core.adapters import EnumeratingAdapter, ScrapeError, SiteAdapter, create_adapter
from tenderwatch.core.backends import HttpBackend
from tenderwatch.core.config import DEFAULT_SOURCES
from tenderwatch.core.config.models import ColumnTableStrategy, EnumerationConfig, SourceConfig

from test_extract import BASAR_HTML


def table_page(*names: str) -> str:
    rows = "".join(
        f'<tr><td>{name}</td><td>01-05-2024</td><td><a href="{i}.pdf">Doc</a></td></tr>'
        for i, name in enumerate(names)
    )
    return f"<html><body><table>{rows}</table></body></html>"


def routed_backend(routes: dict, config) -> tuple[HttpBackend, list[str]]:
    """Backend serving ``routes`` (url -> html or status); anything else is a 404."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        seen.append(url)
        body = routes.get(url, 404)
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, text=body)

    return HttpBackend(config, transport=httpx.MockTransport(handler)), seen


def enumerating_source(**enumeration) -> SourceConfig:
    return SourceConfig(
        id="campus",
        name="Campus",
        base_url="https://campus.example.edu",
        listing_path="/tenders/",
        strategy=ColumnTableStrategy(row_selectors=["table tr"], min_cells=3),
        enumeration=EnumerationConfig(**enumeration),
    )


BASAR = next(s for s in DEFAULT_SOURCES if s.id == "basar")


# =============================================================================
# SiteAdapter
# =============================================================================


async def test_scrape_parses_listing_and_dedupes(fast_http_config):
    duplicated = BASAR_HTML.replace("</tbody>", """
      <tr><td><font>: 28-05-2024</font></td><td><a href="tenders/again.pdf">Canteen tender</a></td></tr>
    </tbody>""")
    backend, seen = routed_backend({BASAR.listing_url: duplicated}, fast_http_config)

    async with backend:
        records = await SiteAdapter(BASAR, backend).scrape()

    assert seen == [BASAR.listing_url]
    assert [r.name for r in records] == ["Canteen tender", "Lab equipment"]


async def test_empty_listing_is_a_valid_result(fast_http_config):
    backend, _ = routed_backend(
        {BASAR.listing_url: "<html><body><p>No tenders</p></body></html>"},
        fast_http_config,
    )
    async with backend:
        assert await SiteAdapter(BASAR, backend).scrape() == []


@pytest.mark.parametrize(
    "response, kind",
    [
        (403, "blocked"),
        (404, "http"),
        (503, "http"),
        ("   ", "parse"),
    ],
)
async def test_failures_are_classified(fast_http_config, response, kind):
    backend, _ = routed_backend({BASAR.listing_url: response}, fast_http_config)

    async with backend:
        with pytest.raises(ScrapeError) as exc_info:
            await SiteAdapter(BASAR, backend).scrape()

    assert exc_info.value.kind == kind
    assert exc_info.value.source_id == "basar"


def test_create_adapter_picks_enumerating_adapter(fast_http_config):
    backend = HttpBackend(fast_http_config)
    nuzvidu = next(s for s in DEFAULT_SOURCES if s.id == "nuzvidu")

    assert isinstance(create_adapter(nuzvidu, backend), EnumeratingAdapter)
    assert type(create_adapter(BASAR, backend)) is SiteAdapter


def test_enumerating_adapter_requires_enumeration(fast_http_config):
    with pytest.raises(ValueError):
        EnumeratingAdapter(BASAR, HttpBackend(fast_http_config))


# =============================================================================
# EnumeratingAdapter
# =============================================================================


def test_probe_urls_cross_paths_and_variants(fast_http_config):
    source = enumerating_source(
        alternative_paths=["/tender", "/Institute.php?view=Tenders"],
        param_variants=["", "?page=1"],
    )
    adapter = EnumeratingAdapter(source, HttpBackend(fast_http_config))

    assert adapter.probe_urls() == [
        "https://campus.example.edu/tenders/",
        "https://campus.example.edu/tenders/?page=1",
        "https://campus.example.edu/tender",
        "https://campus.example.edu/tender?page=1",
        "https://campus.example.edu/Institute.php?view=Tenders",
        "https://campus.example.edu/Institute.php?view=Tenders&page=1",
    ]


async def test_enumeration_accumulates_unique_records(fast_http_config):
    source = enumerating_source(
        alternative_paths=["/tender"],
        param_variants=["", "?page=1"],
        early_stop_threshold=5,
    )
    backend, seen = routed_backend(
        {
            "https://campus.example.edu/tenders/": table_page("Supply of chairs", "Supply of desks"),
            "https://campus.example.edu/tenders/?page=1": table_page("Supply of desks", "Lab reagents"),
            "https://campus.example.edu/tender?page=1": table_page("Annual maintenance"),
        },
        fast_http_config,
    )

    async with backend:
        records = await EnumeratingAdapter(source, backend).scrape()

    assert [r.name for r in records] == [
        "Supply of chairs",
        "Supply of desks",
        "Lab reagents",
        "Annual maintenance",
    ]
    # /tender answered 404 and was skipped
    assert len(seen) == 4


async def test_enumeration_stops_early_on_a_rich_page(fast_http_config):
    source = enumerating_source(param_variants=["", "?page=1"], early_stop_threshold=2)
    backend, seen = routed_backend(
        {"https://campus.example.edu/tenders/": table_page("Tender A", "Tender B", "Tender C")},
        fast_http_config,
    )

    async with backend:
        records = await EnumeratingAdapter(source, backend).scrape()

    assert len(records) == 3
    assert seen == ["https://campus.example.edu/tenders/"]


async def test_enumeration_caps_at_max_records(fast_http_config):
    source = enumerating_source(param_variants=["", "?page=1"], max_records=2, early_stop_threshold=10)
    backend, seen = routed_backend(
        {"https://campus.example.edu/tenders/": table_page("Tender A", "Tender B", "Tender C")},
        fast_http_config,
    )

    async with backend:
        records = await EnumeratingAdapter(source, backend).scrape()

    assert [r.name for r in records] == ["Tender A", "Tender B"]
    assert len(seen) == 1


async def test_enumeration_fails_when_every_probe_fails(fast_http_config):
    source = enumerating_source(alternative_paths=["/tender"], param_variants=[""])
    backend, seen = routed_backend({}, fast_http_config)

    async with backend:
        with pytest.raises(ScrapeError) as exc_info:
            await EnumeratingAdapter(source, backend).scrape()

    assert exc_info.value.kind == "http"
    assert len(seen) == 2


async def test_enumeration_with_only_empty_pages_returns_nothing(fast_http_config):
    source = enumerating_source(param_variants=[""])
    backend, _ = routed_backend(
        {"https://campus.example.edu/tenders/": "<html><body><p>Nothing yet</p></body></html>"},
        fast_http_config,
    )

    async with backend:
        assert await EnumeratingAdapter(source, backend).scrape() == []
