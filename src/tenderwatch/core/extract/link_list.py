"""
Link-list row extraction.

Rows carry a date label and one or more document anchors; the first
anchor's text doubles as the tender title. There is no closing date.
"""

from __future__ import annotations

from lxml.html import HtmlElement

from tenderwatch.core.config.models import LinkListStrategy
from tenderwatch.core.models import DownloadLink, TenderRecord

from .base import Extractor, select
from .text import clean_text, resolve_url


class LinkListExtractor(Extractor[LinkListStrategy]):
    """Extract records from date-plus-links rows."""

    @property
    def name(self) -> str:
        return "link_list"

    def extract_row(self, row: HtmlElement, base_url: str) -> TenderRecord | None:
        if not row.xpath(".//td"):
            return None

        links = []
        for anchor in row.xpath(".//a"):
            href = (anchor.get("href") or "").strip()
            links.append(
                DownloadLink(
                    text=clean_text(anchor.text_content()),
                    url=resolve_url(href, base_url) if href else "",
                )
            )
        if not links:
            return None

        date_text = " ".join(el.text_content() for el in select(row, self.strategy.date_selector))
        posted = clean_text(clean_text(date_text).strip(self.strategy.date_strip_chars))

        return TenderRecord(
            name=links[0].text,
            posted_date=posted,
            closing_date="",
            download_links=tuple(link for link in links if link.url),
        )
