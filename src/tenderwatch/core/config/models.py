"""
Pydantic configuration models for TenderWatch.

These models provide type-safe configuration with validation for:
- Application settings
- Tender source definitions and their parsing strategies
- HTTP fetch, cache, scheduler and query behaviour
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# Enums
# =============================================================================


class CacheBackendType(str, Enum):
    """Supported cache store implementations."""

    MEMORY = "memory"
    SQL = "sql"


# =============================================================================
# Parsing Strategies
# =============================================================================


class _StrategyBase(BaseModel):
    """Fields shared by every parsing strategy."""

    row_selectors: list[str] = Field(
        ...,
        min_length=1,
        description="CSS selectors for listing rows, tried in order until one matches",
    )
    min_name_length: int = Field(
        default=1,
        ge=1,
        description="Rows whose name is shorter than this are ignored",
    )


class ColumnTableStrategy(_StrategyBase):
    """Positional table layout: each field lives in a fixed column."""

    kind: Literal["column_table"] = "column_table"
    skip_rows: int = Field(
        default=0,
        ge=0,
        description="Leading rows to skip (header rows)",
    )
    min_cells: int = Field(default=3, ge=1, description="Minimum td cells for a data row")
    exact_cells: int | None = Field(
        default=None,
        ge=1,
        description="Require exactly this many td cells",
    )
    name_column: int = Field(default=0)
    posted_column: int | None = Field(default=1)
    closing_column: int | None = Field(default=2)
    links_column: int = Field(
        default=-1,
        description="Column holding document links (negative counts from the end)",
    )
    scan_all_cells_for_documents: bool = Field(
        default=False,
        description="When the link column has no anchors, collect document-like links from any cell",
    )
    missing_date_text: str = Field(
        default="",
        description="Stands in for an empty posted or closing date",
    )
    page_link_text: str | None = Field(
        default=None,
        description="When set, rows without document links link to the listing page under this text",
    )


class CellClassStrategy(_StrategyBase):
    """Row layout where each field is addressed by a selector inside the row."""

    kind: Literal["cell_class"] = "cell_class"
    name_selector: str = Field(..., description="Selector for the tender title element")
    posted_selector: str | None = Field(default=None)
    closing_selector: str | None = Field(default=None)
    links_selector: str = Field(default="a", description="Selector for document anchors")
    strip_from_name: list[str] = Field(
        default_factory=list,
        description="Tags removed from the name element before taking its text (e.g. icons)",
    )
    strip_from_link_text: list[str] = Field(
        default_factory=list,
        description="Tags removed from anchors before taking their text",
    )
    require_all_fields: bool = Field(
        default=False,
        description="Skip rows where any configured field selector matches nothing",
    )
    onclick_pattern: str | None = Field(
        default=None,
        description="Regex with one group extracting the document URL from an onclick attribute",
    )
    onclick_url_base: str | None = Field(
        default=None,
        description=(
            "Prefix for relative onclick URLs; a leading slash stays under this prefix "
            "instead of resolving against the site root"
        ),
    )
    default_link_text: str = Field(default="Download")


class LinkListStrategy(_StrategyBase):
    """Rows consisting of a date label followed by document anchors."""

    kind: Literal["link_list"] = "link_list"
    date_selector: str = Field(default="font", description="Selector for the posted date label")
    date_strip_chars: str = Field(
        default=":",
        description="Characters trimmed from both ends of the date label",
    )


ParsingStrategy = Annotated[
    Union[ColumnTableStrategy, CellClassStrategy, LinkListStrategy],
    Field(discriminator="kind"),
]


# =============================================================================
# Source Configuration
# =============================================================================


DEFAULT_PARAM_VARIANTS = ["", "?limit=20", "?limit=25", "?page=1", "?view=all", "?count=20"]


class EnumerationConfig(BaseModel):
    """Probe several listing URLs to collect up to N unique tenders."""

    alternative_paths: list[str] = Field(
        default_factory=list,
        description="Extra listing paths tried after the primary listing path",
    )
    param_variants: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PARAM_VARIANTS),
        description="Query-string suffixes tried for every path",
    )
    max_records: int = Field(default=50, ge=1, le=1000)
    early_stop_threshold: int = Field(
        default=5,
        ge=0,
        description="Stop probing once a single URL yields more records than this",
    )


class SourceConfig(BaseModel):
    """Complete configuration for one tender source.

    Defines where the listing lives, how its markup is parsed, and how
    often the orchestrator refreshes it.
    """

    id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        pattern=r"^[a-z0-9][a-z0-9_-]*$",
        description="Unique source identifier",
    )
    name: str = Field(..., min_length=1, description="Human-readable source name")
    base_url: str = Field(..., description="Site origin, e.g. https://www.rgukt.ac.in")
    listing_path: str = Field(default="/", description="Path of the tender listing page")
    link_base_url: str | None = Field(
        default=None,
        description="Base for resolving document links (default: the listing URL)",
    )
    official_url: str | None = Field(
        default=None,
        description="Public tenders page shown in fallback placeholders",
    )
    strategy: ParsingStrategy
    enumeration: EnumerationConfig | None = Field(default=None)

    scrape_interval_minutes: int = Field(default=30, ge=1, le=24 * 60)
    priority: int = Field(default=1, ge=1, le=10, description="1 = highest priority")
    enabled: bool = Field(default=True)

    @field_validator("base_url")
    @classmethod
    def base_url_is_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an absolute http(s) URL")
        return v.rstrip("/")

    @property
    def listing_url(self) -> str:
        return self.url_for(self.listing_path)

    @property
    def effective_link_base(self) -> str:
        return self.link_base_url or self.listing_url

    @property
    def effective_official_url(self) -> str:
        return self.official_url or self.listing_url

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"


# =============================================================================
# HTTP Configuration
# =============================================================================


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class HttpConfig(BaseModel):
    """Fetch timeout and retry policy shared by all adapters."""

    timeout_seconds: float = Field(default=15.0, gt=0, le=300.0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    min_wait_seconds: float = Field(default=1.0, ge=0)
    max_wait_seconds: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=0)
    jitter: bool = Field(default=True)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)

    @field_validator("max_wait_seconds")
    @classmethod
    def max_wait_gte_min(cls, v: float, info: Any) -> float:
        """Ensure max wait is at least min wait."""
        if v < info.data.get("min_wait_seconds", 0):
            raise ValueError("max_wait_seconds must be >= min_wait_seconds")
        return v


# =============================================================================
# Cache Configuration
# =============================================================================


class CacheConfig(BaseModel):
    """Cache store selection and TTLs."""

    backend: CacheBackendType = Field(default=CacheBackendType.MEMORY)
    database_url: str = Field(
        default="sqlite:///data/tenderwatch.db",
        description="SQLAlchemy URL for the sql backend",
    )
    ttl_seconds: int = Field(default=15 * 60, ge=1)
    fallback_ttl_seconds: int = Field(default=60, ge=1)
    stale_retention_seconds: int | None = Field(
        default=None,
        ge=0,
        description="Evict entries this long after expiry (None keeps them for stale reads)",
    )


# =============================================================================
# Scheduler Configuration
# =============================================================================


class SchedulerConfig(BaseModel):
    """Orchestrator timing policy."""

    autostart: bool = Field(default=True, description="Start timers when the API boots")
    run_on_start: bool = Field(default=True, description="Fire every job once immediately on start")
    min_interval_seconds: int = Field(
        default=300,
        ge=0,
        description="Minimum time between two runs of the same source",
    )
    failure_backoff_base_minutes: int = Field(default=30, ge=1)
    failure_backoff_max_minutes: int = Field(default=240, ge=1)


# =============================================================================
# Query Configuration
# =============================================================================


class QueryConfig(BaseModel):
    """Read-path behaviour of the query facade."""

    stale_while_revalidate: bool = Field(
        default=True,
        description="Serve expired entries immediately and refresh in the background",
    )
    refresh_cooldown_seconds: int = Field(
        default=120,
        ge=0,
        description="After a failed refresh, serve stale/fallback data for this long",
    )
    default_page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=500, ge=1)


# =============================================================================
# API / Logging Configuration
# =============================================================================


class ApiConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    file: Path | None = Field(default=Path("logs/tenderwatch.log"))
    json_format: bool = Field(default=True, description="Use JSON format for file logs")
    rich_console: bool = Field(default=True, description="Use Rich for console output")


# =============================================================================
# Application Configuration
# =============================================================================


def _default_sources() -> list[SourceConfig]:
    from .sources import DEFAULT_SOURCES

    return [source.model_copy(deep=True) for source in DEFAULT_SOURCES]


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    sources: list[SourceConfig] = Field(default_factory=_default_sources)
    sources_dir: Path | None = Field(
        default=None,
        description="Directory of per-source YAML files merged over the built-ins",
    )

    @model_validator(mode="after")
    def unique_source_ids(self) -> "AppConfig":
        ids = [source.id for source in self.sources]
        duplicates = sorted({source_id for source_id in ids if ids.count(source_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate source ids: {', '.join(duplicates)}")
        return self

    @property
    def enabled_sources(self) -> list[SourceConfig]:
        return [source for source in self.sources if source.enabled]

    def get_source(self, source_id: str) -> SourceConfig | None:
        for source in self.sources:
            if source.id == source_id:
                return source
        return None
