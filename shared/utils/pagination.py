"""
shared/utils/pagination.py
Pagination math and the standard success envelope.
"""

import math
from typing import Any, Optional, Sequence, TypeVar

T = TypeVar("T")


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total: int) -> dict:
    """{page, limit, total, pages, hasNext, hasPrev} with pages = ceil(total/limit)."""
    pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "hasNext": page < pages,
        "hasPrev": page > 1,
    }


def paginate_list(items: Sequence[T], page: int, limit: int) -> tuple[list[T], dict]:
    """Slice an already filtered + ordered list into one page."""
    start = offset_for(page, limit)
    return list(items[start:start + limit]), build_pagination(page, limit, len(items))


def ok(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[dict] = None,
) -> dict:
    """Success envelope: {success, data, message?, pagination?}."""
    body: dict = {"success": True, "data": data}
    if message is not None:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return body
