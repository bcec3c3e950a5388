"""
Selector-per-field row extraction.

Each field of a tender is located by its own CSS selector inside the
row, e.g. ``td.tender-info`` for the title and ``td.color-red`` for the
closing date.
"""

from __future__ import annotations

import re

from lxml.html import HtmlElement

from tenderwatch.core.config.models import CellClassStrategy
from tenderwatch.core.models import DownloadLink, TenderRecord

from .base import Extractor, select
from .text import element_text, is_absolute_url, resolve_url


def _usable_href(href: str | None) -> str | None:
    if not href:
        return None
    href = href.strip()
    if not href or href == "#" or href.lower().startswith("javascript:"):
        return None
    return href


class CellClassExtractor(Extractor[CellClassStrategy]):
    """Extract records whose fields are addressed by selectors within a row."""

    def __init__(self, strategy: CellClassStrategy, base_url: str, source_id: str | None = None):
        super().__init__(strategy, base_url, source_id)
        self._onclick = re.compile(strategy.onclick_pattern) if strategy.onclick_pattern else None

    @property
    def name(self) -> str:
        return "cell_class"

    def _first(self, row: HtmlElement, selector: str | None) -> HtmlElement | None:
        if selector is None:
            return None
        matches = select(row, selector)
        return matches[0] if matches else None

    def extract_row(self, row: HtmlElement, base_url: str) -> TenderRecord | None:
        strategy = self.strategy

        name_el = self._first(row, strategy.name_selector)
        posted_el = self._first(row, strategy.posted_selector)
        closing_el = self._first(row, strategy.closing_selector)
        anchors = select(row, strategy.links_selector)

        if strategy.require_all_fields:
            expected = [name_el]
            if strategy.posted_selector:
                expected.append(posted_el)
            if strategy.closing_selector:
                expected.append(closing_el)
            if any(el is None for el in expected) or not anchors:
                return None

        links = []
        for anchor in anchors:
            link = self._link_from(anchor, base_url)
            if link is not None:
                links.append(link)

        return TenderRecord(
            name=element_text(name_el, strategy.strip_from_name) if name_el is not None else "",
            posted_date=element_text(posted_el) if posted_el is not None else "",
            closing_date=element_text(closing_el) if closing_el is not None else "",
            download_links=tuple(links),
        )

    def _onclick_url(self, anchor: HtmlElement) -> str | None:
        if self._onclick is None:
            return None
        match = self._onclick.search(anchor.get("onclick") or "")
        if not match or not match.group(1):
            return None
        url = match.group(1).strip()
        prefix = self.strategy.onclick_url_base
        if prefix and not is_absolute_url(url):
            return f"{prefix.rstrip('/')}/{url.lstrip('/')}"
        return url

    def _link_from(self, anchor: HtmlElement, base_url: str) -> DownloadLink | None:
        url = self._onclick_url(anchor)
        if url is None:
            url = _usable_href(anchor.get("href"))
        if url is None:
            return None

        text = element_text(anchor, self.strategy.strip_from_link_text)
        return DownloadLink(
            text=text or self.strategy.default_link_text,
            url=resolve_url(url, base_url),
        )
