"""
Pagination helpers for tender lists.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 500


def _to_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_pagination_params(
    page: Any = None,
    limit: Any = None,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> tuple[int, int]:
    """Clamp raw page/limit values to ``page >= 1`` and ``1 <= limit <= max_limit``.

    Unparseable values fall back to the defaults.
    """
    page_number = max(1, _to_int(page, DEFAULT_PAGE))
    page_size = min(max(1, _to_int(limit, default_limit)), max_limit)
    return page_number, page_size


@dataclass(frozen=True)
class PaginatedResponse(Generic[T]):
    """One page of a larger result set."""

    data: list[T]
    total_count: int
    current_page: int
    total_pages: int
    limit: int

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [item.to_dict() if hasattr(item, "to_dict") else item for item in self.data],
            "totalCount": self.total_count,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "limit": self.limit,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }


def paginate(items: Sequence[T], page: int, limit: int) -> PaginatedResponse[T]:
    """Slice ``items`` to the requested 1-based page.

    Raises:
        ValueError: If page or limit is below 1
    """
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be >= 1")

    offset = (page - 1) * limit
    total = len(items)
    return PaginatedResponse(
        data=list(items[offset : offset + limit]),
        total_count=total,
        current_page=page,
        total_pages=math.ceil(total / limit),
        limit=limit,
    )
