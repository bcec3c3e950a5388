"""
Strategy-to-extractor mapping.
"""

from __future__ import annotations

from typing import assert_never

from tenderwatch.core.config.models import (
    CellClassStrategy,
    ColumnTableStrategy,
    LinkListStrategy,
    ParsingStrategy,
)

from .base import Extractor
from .cell_class import CellClassExtractor
from .column_table import ColumnTableExtractor
from .link_list import LinkListExtractor


def build_extractor(
    strategy: ParsingStrategy,
    base_url: str,
    source_id: str | None = None,
) -> Extractor:
    """Create the extractor for a parsing strategy.

    Args:
        strategy: One of the tagged parsing strategies
        base_url: Base URL for resolving relative links
        source_id: Source identifier used in log records

    Raises:
        TypeError: If the strategy type is not handled
    """
    if isinstance(strategy, ColumnTableStrategy):
        return ColumnTableExtractor(strategy, base_url, source_id)
    if isinstance(strategy, CellClassStrategy):
        return CellClassExtractor(strategy, base_url, source_id)
    if isinstance(strategy, LinkListStrategy):
        return LinkListExtractor(strategy, base_url, source_id)
    assert_never(strategy)
