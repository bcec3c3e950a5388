"""
Extraction base classes and data structures.

Defines the interface for all parsing strategies.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, Iterator, TypeVar

from cssselect import SelectorError
from lxml import etree
from lxml import html as lxml_html
from lxml.html import HtmlElement

from tenderwatch.core.config.models import CellClassStrategy, ColumnTableStrategy, LinkListStrategy
from tenderwatch.core.logging import get_logger
from tenderwatch.core.models import TenderRecord

logger = get_logger("extract")

StrategyT = TypeVar("StrategyT", ColumnTableStrategy, CellClassStrategy, LinkListStrategy)


class DocumentParseError(Exception):
    """The page does not look like an HTML document at all."""


@dataclass
class ExtractionResult:
    """Result of an extraction operation."""

    records: list[TenderRecord] = field(default_factory=list)

    # Rows that matched the layout but had no usable name
    rejected_rows: int = 0

    warnings: list[str] = field(default_factory=list)

    # Debug info
    source_selector: str | None = None  # CSS selector that matched rows
    extraction_method: str | None = None

    @property
    def record_count(self) -> int:
        return len(self.records)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


def parse_document(html: str) -> HtmlElement:
    """Parse an HTML page, rejecting bodies that are empty or unparseable.

    Raises:
        DocumentParseError: If the page is empty, unparseable or has no <body>
    """
    if not html or not html.strip():
        raise DocumentParseError("Empty response body")

    try:
        doc = lxml_html.document_fromstring(html)
    except ValueError:
        # lxml refuses str input that carries an XML encoding declaration
        try:
            doc = lxml_html.document_fromstring(html.encode("utf-8"))
        except (etree.ParserError, ValueError) as e:
            raise DocumentParseError(f"Unparseable HTML: {e}") from e
    except etree.ParserError as e:
        raise DocumentParseError(f"Unparseable HTML: {e}") from e

    if doc.find(".//body") is None:
        raise DocumentParseError("Document has no <body>")
    return doc


def select(element: HtmlElement, selector: str) -> list[HtmlElement]:
    """Run a CSS selector, treating an invalid selector as no match."""
    try:
        return list(element.cssselect(selector))
    except (SelectorError, etree.XPathError):
        logger.warning(f"Invalid CSS selector: {selector!r}")
        return []


class Extractor(ABC, Generic[StrategyT]):
    """Abstract base class for strategy-driven extractors.

    Subclasses turn a single row element into a TenderRecord; row
    discovery with fallback selectors is shared.
    """

    def __init__(self, strategy: StrategyT, base_url: str, source_id: str | None = None):
        """Initialize extractor.

        Args:
            strategy: Parsing strategy from the source configuration
            base_url: Base URL for resolving relative links
            source_id: Source identifier used in log records
        """
        self.strategy = strategy
        self.base_url = base_url
        self.source_id = source_id

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor identifier."""

    @abstractmethod
    def extract_row(self, row: HtmlElement, base_url: str) -> TenderRecord | None:
        """Build a record from one row.

        Returns None for rows that do not match the layout.

        Raises:
            ValueError: If the row matches the layout but has no name
        """

    def find_rows(self, doc: HtmlElement) -> Iterator[tuple[str, list[HtmlElement]]]:
        """Yield ``(selector, rows)`` for each configured row selector that matches."""
        for selector in self.strategy.row_selectors:
            rows = select(doc, selector)
            if rows:
                yield selector, rows

    def prepare_rows(self, rows: list[HtmlElement]) -> list[HtmlElement]:
        return rows

    def complete_record(self, record: TenderRecord, page_url: str) -> TenderRecord:
        """Fill source-specific defaults into an accepted record."""
        return record

    def extract(
        self,
        html: str,
        url: str | None = None,
        page_url: str | None = None,
    ) -> ExtractionResult:
        """Extract tender records from a listing page.

        Row selectors are tried in order until one yields records. When
        none does, the result of the first matching selector is returned.

        Args:
            html: HTML content
            url: Page URL, used instead of the configured base for links
            page_url: URL the page was fetched from (defaults to the link base)

        Returns:
            ExtractionResult with extracted records

        Raises:
            DocumentParseError: If the page is not a usable HTML document
        """
        base_url = url or self.base_url
        doc = parse_document(html)

        first: ExtractionResult | None = None
        for selector, rows in self.find_rows(doc):
            result = self._extract_rows(selector, rows, base_url, page_url or base_url)
            if result.records:
                return self._finish(result)
            if first is None:
                first = result
            logger.debug(
                f"Selector {selector!r} matched {len(rows)} rows but no tenders",
                extra={"source": self.source_id},
            )

        if first is None:
            first = ExtractionResult(extraction_method=self.name)
            first.add_warning("No rows matched any row selector")
        return self._finish(first)

    def _extract_rows(
        self,
        selector: str,
        rows: list[HtmlElement],
        base_url: str,
        page_url: str,
    ) -> ExtractionResult:
        result = ExtractionResult(extraction_method=self.name, source_selector=selector)

        for index, row in enumerate(self.prepare_rows(rows)):
            try:
                record = self.extract_row(row, base_url)
            except ValueError as e:
                result.rejected_rows += 1
                logger.debug(
                    f"Rejected row {index}: {e}",
                    extra={"source": self.source_id},
                )
                continue
            if record is None:
                continue
            if len(record.name) < self.strategy.min_name_length:
                continue
            result.records.append(self.complete_record(record, page_url))
        return result

    def _finish(self, result: ExtractionResult) -> ExtractionResult:
        if result.rejected_rows:
            result.add_warning(f"Rejected {result.rejected_rows} rows without a name")
            logger.info(
                f"Rejected {result.rejected_rows} rows without a name",
                extra={"source": self.source_id},
            )
        return result
