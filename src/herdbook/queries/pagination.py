"""Offset pagination arithmetic for listing responses."""

from __future__ import annotations

import math


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total_count: int) -> dict:
    """Pagination block for a listing response.

    ``totalPages`` is ``ceil(totalCount / limit)``; an empty result has zero
    pages and no next page.
    """
    total_pages = math.ceil(total_count / limit) if total_count else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalCount": total_count,
        "limit": limit,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }
