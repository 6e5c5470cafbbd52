"""
tests/test_pagination.py
Pagination math and the success envelope.
"""

import pytest

from shared.utils.pagination import build_pagination, ok, paginate_list


@pytest.mark.parametrize("page,limit,total,pages,has_next,has_prev", [
    (1, 10, 0, 0, False, False),
    (1, 10, 10, 1, False, False),
    (1, 10, 11, 2, True, False),
    (2, 10, 11, 2, False, True),
    (3, 5, 30, 6, True, True),
])
def test_build_pagination(page, limit, total, pages, has_next, has_prev):
    result = build_pagination(page, limit, total)
    assert result == {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "hasNext": has_next,
        "hasPrev": has_prev,
    }


def test_paginate_list_slices_page():
    items, pagination = paginate_list(list(range(7)), page=2, limit=3)
    assert items == [3, 4, 5]
    assert pagination["pages"] == 3


def test_envelope_omits_empty_keys():
    assert ok([1]) == {"success": True, "data": [1]}
    assert ok(None, "Done", {"page": 1}) == {
        "success": True, "data": None, "message": "Done", "pagination": {"page": 1}
    }
