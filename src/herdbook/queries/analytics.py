"""Tenant-wide feed inventory analytics returned alongside the feed listing."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import date, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.herdbook.models.farm import FeedInventoryItem

EXPIRING_WITHIN_DAYS = 30


class FeedAnalytics:
    """Aggregates over all active inventory of a tenant, not just one page."""

    def __init__(self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]) -> None:
        self._session_factory = session_factory

    async def summarize(self, tenant_id: str, today: date) -> dict[str, Any]:
        horizon = today + timedelta(days=EXPIRING_WITHIN_DAYS)
        value = FeedInventoryItem.quantity * FeedInventoryItem.unit_cost
        stmt = (
            select(
                FeedInventoryItem.category,
                func.coalesce(func.sum(value), 0.0),
                func.coalesce(func.sum(FeedInventoryItem.quantity), 0.0),
                func.count(),
                func.count().filter(FeedInventoryItem.quantity <= FeedInventoryItem.minimum_stock),
                func.count().filter(
                    FeedInventoryItem.expiry_date.is_not(None),
                    FeedInventoryItem.expiry_date <= horizon,
                ),
            )
            .where(
                FeedInventoryItem.tenant_id == uuid.UUID(tenant_id),
                FeedInventoryItem.is_active.is_(True),
            )
            .group_by(FeedInventoryItem.category)
            .order_by(FeedInventoryItem.category)
        )

        async for session in self._session_factory():
            rows = (await session.execute(stmt)).all()
            return build_feed_analytics(rows)
        raise RuntimeError("session factory yielded no session")


def build_feed_analytics(rows: list[tuple]) -> dict[str, Any]:
    """Fold per-category aggregate rows into the analytics block.

    Each row is ``(category, value, stock, items, low_stock, expiring)``.
    """
    total_value = sum(float(row[1]) for row in rows)
    breakdown = []
    for category, cat_value, cat_stock, items, _low, _expiring in rows:
        breakdown.append(
            {
                "category": category,
                "totalValue": round(float(cat_value), 2),
                "totalStock": round(float(cat_stock), 2),
                "itemCount": items,
                "valuePercentage": round(float(cat_value) / total_value * 100, 1) if total_value else 0.0,
            }
        )
    return {
        "totalValue": round(total_value, 2),
        "totalItems": sum(row[3] for row in rows),
        "totalStock": round(sum(float(row[2]) for row in rows), 2),
        "lowStockItems": sum(row[4] for row in rows),
        "expiringItems": sum(row[5] for row in rows),
        "categoryBreakdown": breakdown,
    }
