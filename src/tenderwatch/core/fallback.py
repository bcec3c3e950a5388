"""
Static placeholder data for sources that cannot be scraped.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Callable, Iterable

from tenderwatch.core.models import DownloadLink, TenderRecord, utcnow

if TYPE_CHECKING:
    from tenderwatch.core.config.models import SourceConfig

PLACEHOLDER_NAME = "Service temporarily unavailable"
PLACEHOLDER_CLOSING = "Please check the official website"
PLACEHOLDER_LINK_TEXT = "Visit Official Site"
FALLBACK_MESSAGE = (
    "Using fallback data due to scraping issues. "
    "Please visit the official website for the most current information."
)


class FallbackProvider:
    """Builds a single placeholder record per known source.

    No I/O; the only input is the official tenders URL from the source
    configuration.
    """

    def __init__(
        self,
        sources: Iterable[SourceConfig],
        today: Callable[[], date] | None = None,
    ) -> None:
        self._official_urls = {source.id: source.effective_official_url for source in sources}
        self._today = today or (lambda: utcnow().date())

    def knows(self, source_id: str) -> bool:
        return source_id in self._official_urls

    def get_fallback(self, source_id: str) -> list[TenderRecord]:
        """Placeholder records for a source (empty for unknown sources)."""
        url = self._official_urls.get(source_id)
        if url is None:
            return []
        return [
            TenderRecord(
                name=PLACEHOLDER_NAME,
                posted_date=self._today().isoformat(),
                closing_date=PLACEHOLDER_CLOSING,
                download_links=(DownloadLink(text=PLACEHOLDER_LINK_TEXT, url=url),),
            )
        ]
