"""Tests for pagination helpers."""

import pytest

from tenderwatch.core.pagination import MAX_LIMIT, paginate, parse_pagination_params


@pytest.mark.parametrize("total", [0, 1, 7, 12, 50])
@pytest.mark.parametrize("limit", [1, 5, 12, 100])
def test_pages_slice_and_reassemble(total, limit):
    items = list(range(total))
    pages = max(1, -(-total // limit))

    collected = []
    for page in range(1, pages + 2):
        result = paginate(items, page, limit)
        expected = min(limit, max(0, total - (page - 1) * limit))
        assert len(result.data) == expected
        collected.extend(result.data)

    assert collected == items


def test_page_metadata():
    result = paginate(list(range(12)), page=2, limit=5)

    assert result.data == [5, 6, 7, 8, 9]
    assert result.total_count == 12
    assert result.total_pages == 3
    assert result.has_next_page is True
    assert result.has_prev_page is True
    assert result.to_dict() == {
        "data": [5, 6, 7, 8, 9],
        "totalCount": 12,
        "currentPage": 2,
        "totalPages": 3,
        "limit": 5,
        "hasNextPage": True,
        "hasPrevPage": True,
    }


def test_empty_result_has_no_pages():
    result = paginate([], page=1, limit=10)

    assert result.total_pages == 0
    assert result.has_next_page is False
    assert result.has_prev_page is False


@pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (-1, -1)])
def test_paginate_rejects_non_positive_values(page, limit):
    with pytest.raises(ValueError):
        paginate([1, 2, 3], page, limit)


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (None, None, (1, 50)),
        ("2", "10", (2, 10)),
        ("0", "0", (1, 1)),
        ("-3", "20", (1, 20)),
        ("abc", "xyz", (1, 50)),
        ("", "", (1, 50)),
        ("4", "100000", (4, MAX_LIMIT)),
    ],
)
def test_parse_pagination_params(page, limit, expected):
    assert parse_pagination_params(page, limit) == expected


def test_parse_pagination_params_custom_bounds():
    assert parse_pagination_params(None, None, default_limit=25, max_limit=30) == (1, 25)
    assert parse_pagination_params(None, "99", default_limit=25, max_limit=30) == (1, 30)
