"""
Enumerating site adapter.

Some sites expose the same listing under several paths and query
variants, each returning a different slice. This adapter probes them in
order and accumulates unique records until it has enough.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenderwatch.core.logging import get_logger
from tenderwatch.core.models import TenderRecord

from .base import ScrapeError, SiteAdapter

if TYPE_CHECKING:
    from tenderwatch.core.backends.base import Backend
    from tenderwatch.core.config.models import EnumerationConfig, SourceConfig

logger = get_logger("adapters.enumerating")


def _with_params(url: str, variant: str) -> str:
    if not variant:
        return url
    if "?" in url and variant.startswith("?"):
        return f"{url}&{variant[1:]}"
    return f"{url}{variant}"


class EnumeratingAdapter(SiteAdapter):
    """Probe candidate listing URLs until enough unique tenders are found."""

    def __init__(self, config: SourceConfig, backend: Backend) -> None:
        if config.enumeration is None:
            raise ValueError(f"Source {config.id} has no enumeration settings")
        super().__init__(config, backend)
        self.enumeration: EnumerationConfig = config.enumeration

    def probe_urls(self) -> list[str]:
        """Every path crossed with every param variant, in order, without repeats."""
        paths = [self.config.listing_path, *self.enumeration.alternative_paths]
        urls: list[str] = []
        for path in paths:
            base = self.config.url_for(path)
            for variant in self.enumeration.param_variants:
                url = _with_params(base, variant)
                if url not in urls:
                    urls.append(url)
        return urls

    async def scrape(self) -> list[TenderRecord]:
        """Accumulate unique records across probe URLs.

        Raises:
            ScrapeError: If every probe failed and nothing was collected
        """
        limit = self.enumeration.max_records
        collected: list[TenderRecord] = []
        seen: set[tuple[str, str]] = set()
        attempted = 0
        failures = 0
        last_error: ScrapeError | None = None

        for url in self.probe_urls():
            if len(collected) >= limit:
                break

            attempted += 1
            try:
                result = await self.scrape_page(url)
            except ScrapeError as e:
                failures += 1
                last_error = e
                logger.warning(
                    f"Probe failed ({e.kind}): {e.cause}",
                    extra={"source": self.source_id, "url": url},
                )
                continue

            for record in result.records:
                if record.dedup_key in seen or len(collected) >= limit:
                    continue
                seen.add(record.dedup_key)
                collected.append(record)

            logger.debug(
                f"Found {result.record_count} tenders (total: {len(collected)})",
                extra={"source": self.source_id, "url": url},
            )

            if result.record_count > self.enumeration.early_stop_threshold:
                break

        if not collected and attempted and failures == attempted and last_error is not None:
            raise ScrapeError(self.source_id, last_error.cause, kind=last_error.kind)

        logger.info(
            f"Enumeration collected {len(collected)} tenders from {attempted} URLs",
            extra={"source": self.source_id},
        )
        return collected
