"""
Positional table extraction.

Each tender is a table row whose cells hold the fields at fixed column
indices. Used by the "Institute.php?view=Tenders" style pages and the
Nuzvidu listing.
"""

from __future__ import annotations

from dataclasses import replace

from lxml.html import HtmlElement

from tenderwatch.core.config.models import ColumnTableStrategy
from tenderwatch.core.models import DownloadLink, TenderRecord

from .base import Extractor
from .text import clean_text, element_text, looks_like_document, resolve_url

DEFAULT_LINK_TEXT = "Download"


def _cell(cells: list[HtmlElement], index: int | None) -> HtmlElement | None:
    if index is None:
        return None
    try:
        return cells[index]
    except IndexError:
        return None


class ColumnTableExtractor(Extractor[ColumnTableStrategy]):
    """Extract records from fixed-column table rows."""

    @property
    def name(self) -> str:
        return "column_table"

    def prepare_rows(self, rows: list[HtmlElement]) -> list[HtmlElement]:
        return rows[self.strategy.skip_rows :]

    def extract_row(self, row: HtmlElement, base_url: str) -> TenderRecord | None:
        strategy = self.strategy
        cells = row.xpath("./td")

        if strategy.exact_cells is not None and len(cells) != strategy.exact_cells:
            return None
        if len(cells) < strategy.min_cells:
            return None

        name_cell = _cell(cells, strategy.name_column)
        posted_cell = _cell(cells, strategy.posted_column)
        closing_cell = _cell(cells, strategy.closing_column)

        links = self._links_from(_cell(cells, strategy.links_column), base_url)
        if not links and strategy.scan_all_cells_for_documents:
            links = self._document_links(cells, base_url)

        return TenderRecord(
            name=element_text(name_cell) if name_cell is not None else "",
            posted_date=element_text(posted_cell) if posted_cell is not None else "",
            closing_date=element_text(closing_cell) if closing_cell is not None else "",
            download_links=tuple(links),
        )

    def complete_record(self, record: TenderRecord, page_url: str) -> TenderRecord:
        strategy = self.strategy
        links = record.download_links
        if not links and strategy.page_link_text:
            links = (DownloadLink(text=strategy.page_link_text, url=page_url),)
        return replace(
            record,
            posted_date=record.posted_date or strategy.missing_date_text,
            closing_date=record.closing_date or strategy.missing_date_text,
            download_links=links,
        )

    def _links_from(
        self,
        cell: HtmlElement | None,
        base_url: str,
        documents_only: bool = False,
    ) -> list[DownloadLink]:
        if cell is None:
            return []
        links = []
        for anchor in cell.xpath(".//a[@href]"):
            href = anchor.get("href", "").strip()
            if not href or (documents_only and not looks_like_document(href)):
                continue
            text = clean_text(anchor.text_content()) or DEFAULT_LINK_TEXT
            links.append(DownloadLink(text=text, url=resolve_url(href, base_url)))
        return links

    def _document_links(self, cells: list[HtmlElement], base_url: str) -> list[DownloadLink]:
        """Collect document-looking anchors from every cell."""
        links = []
        for cell in cells:
            links.extend(self._links_from(cell, base_url, documents_only=True))
        return links
