"""
Site adapter base class.

A site adapter owns one tender source: it fetches the listing page
through a backend and parses it with the source's parsing strategy.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from tenderwatch.core.backends.base import BackendError, RequestSpec
from tenderwatch.core.extract import DocumentParseError, ExtractionResult, build_extractor
from tenderwatch.core.logging import get_logger
from tenderwatch.core.models import TenderRecord, dedupe_records

if TYPE_CHECKING:
    from tenderwatch.core.backends.base import Backend
    from tenderwatch.core.config.models import SourceConfig

logger = get_logger("adapters")


class ScrapeError(Exception):
    """A scrape of one source failed after retries.

    Attributes:
        source_id: Source that failed
        cause: Underlying exception
        kind: Failure classification (network, timeout, http, blocked,
            rate_limited, parse, unexpected)
    """

    def __init__(self, source_id: str, cause: BaseException | str, kind: str = "network"):
        self.source_id = source_id
        self.cause = cause
        self.kind = kind
        super().__init__(f"{source_id}: {cause}")


class SiteAdapter:
    """Scrape one source's listing page into TenderRecords."""

    def __init__(self, config: SourceConfig, backend: Backend) -> None:
        """Initialize the adapter.

        Args:
            config: Source configuration
            backend: Backend for making requests
        """
        self.config = config
        self.backend = backend
        self.extractor = build_extractor(
            config.strategy,
            base_url=config.effective_link_base,
            source_id=config.id,
        )

    @property
    def source_id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    async def scrape_page(self, url: str) -> ExtractionResult:
        """Fetch and parse a single listing page.

        Raises:
            ScrapeError: If the fetch fails after retries or the page is broken
        """
        request = RequestSpec(url=url, source_id=self.source_id)

        try:
            fetch_result = await self.backend.fetch(request)
        except BackendError as e:
            raise ScrapeError(self.source_id, e, kind=e.kind) from e

        try:
            return self.extractor.extract(fetch_result.html, page_url=url)
        except DocumentParseError as e:
            raise ScrapeError(self.source_id, e, kind="parse") from e

    async def scrape(self) -> list[TenderRecord]:
        """Scrape the source's listing page.

        Returns:
            De-duplicated records; an empty list is a valid result

        Raises:
            ScrapeError: On exhausted retries or a broken page
        """
        start = time.monotonic()
        result = await self.scrape_page(self.config.listing_url)
        records = dedupe_records(result.records)

        logger.info(
            f"Scraped {len(records)} tenders in {time.monotonic() - start:.2f}s "
            f"(selector: {result.source_selector})",
            extra={"source": self.source_id, "url": self.config.listing_url},
        )
        for warning in result.warnings:
            logger.debug(warning, extra={"source": self.source_id})
        return records
