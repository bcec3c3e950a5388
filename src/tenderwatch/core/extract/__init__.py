"""Parsing strategies for tender listing pages."""

from .base import DocumentParseError, ExtractionResult, Extractor, parse_document
from .cell_class import CellClassExtractor
from .column_table import ColumnTableExtractor
from .link_list import LinkListExtractor
from .registry import build_extractor
from .text import clean_text, resolve_url

__all__ = [
    "Extractor",
    "ExtractionResult",
    "DocumentParseError",
    "parse_document",
    "ColumnTableExtractor",
    "CellClassExtractor",
    "LinkListExtractor",
    "build_extractor",
    "clean_text",
    "resolve_url",
]
