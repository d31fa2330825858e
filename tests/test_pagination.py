"""Tests for pagination arithmetic."""

from __future__ import annotations

from src.herdbook.queries.pagination import build_pagination, page_offset


def test_twenty_three_rows_at_ten_per_page():
    first = build_pagination(page=1, limit=10, total_count=23)
    assert first["totalPages"] == 3
    assert first["hasNextPage"] is True
    assert first["hasPreviousPage"] is False

    last = build_pagination(page=3, limit=10, total_count=23)
    assert last["hasNextPage"] is False
    assert last["hasPreviousPage"] is True
    assert page_offset(3, 10) == 20


def test_empty_result():
    pagination = build_pagination(page=1, limit=20, total_count=0)
    assert pagination["totalPages"] == 0
    assert pagination["hasNextPage"] is False
    assert pagination["hasPreviousPage"] is False


def test_page_beyond_last():
    pagination = build_pagination(page=5, limit=10, total_count=23)
    assert pagination["currentPage"] == 5
    assert pagination["hasNextPage"] is False
    assert pagination["hasPreviousPage"] is True


def test_exact_multiple():
    assert build_pagination(page=1, limit=10, total_count=20)["totalPages"] == 2
