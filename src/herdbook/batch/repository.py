"""SQL side of batch operations.

Every write method runs in its own short transaction so one animal's failure
never touches another animal's writes.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.herdbook.models.farm import Animal, AnimalEvent, FeedInventoryItem
from src.herdbook.models.tasks import BatchRun


class EntityOperationError(Exception):
    """A business rule rejected the operation for one animal."""


@dataclass(frozen=True)
class AnimalRef:
    id: uuid.UUID
    name: str | None
    tag: str
    location: str | None = None

    @property
    def label(self) -> str:
        return f"{self.name or 'Unnamed'} ({self.tag})"


@dataclass(frozen=True)
class EventContext:
    """What every AnimalEvent of one batch shares."""

    tenant_id: uuid.UUID
    batch_id: uuid.UUID
    event_type: str
    actor: str
    occurred_at: datetime


@dataclass(frozen=True)
class StoredBatchRun:
    operation: str
    response: dict[str, Any]


class BatchRepository:
    """Tenant-scoped reads and per-entity writes for the batch executor.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]) -> None:
        self._session_factory = session_factory

    # ── Pre-validation ──────────────────────────────────────────────────

    async def resolve_animals(self, tenant_id: uuid.UUID, ids: list[uuid.UUID]) -> list[AnimalRef]:
        """Return the live animals of the tenant among ``ids`` (one lookup)."""
        async for session in self._session_factory():
            result = await session.execute(
                select(Animal.id, Animal.name, Animal.tag, Animal.location).where(
                    Animal.tenant_id == tenant_id,
                    Animal.id.in_(ids),
                    Animal.deleted_at.is_(None),
                )
            )
            return [AnimalRef(id=row.id, name=row.name, tag=row.tag, location=row.location) for row in result.all()]
        return []

    async def feed_item_exists(self, tenant_id: uuid.UUID, feed_item_id: uuid.UUID) -> bool:
        async for session in self._session_factory():
            found = await session.scalar(
                select(FeedInventoryItem.id).where(
                    FeedInventoryItem.tenant_id == tenant_id,
                    FeedInventoryItem.id == feed_item_id,
                    FeedInventoryItem.is_active.is_(True),
                )
            )
            return found is not None
        return False

    # ── Per-entity writes ───────────────────────────────────────────────

    async def record_event(self, ctx: EventContext, animal: AnimalRef, details: dict[str, Any]) -> uuid.UUID:
        async for session in self._session_factory():
            async with session.begin():
                event = _event(ctx, animal, details)
                session.add(event)
            return event.id
        raise RuntimeError("session factory yielded no session")

    async def relocate(
        self,
        ctx: EventContext,
        animal: AnimalRef,
        to_location: str,
        details: dict[str, Any],
    ) -> uuid.UUID:
        async for session in self._session_factory():
            async with session.begin():
                await session.execute(
                    update(Animal)
                    .where(Animal.tenant_id == ctx.tenant_id, Animal.id == animal.id)
                    .values(location=to_location, updated_at=ctx.occurred_at)
                )
                event = _event(ctx, animal, details)
                session.add(event)
            return event.id
        raise RuntimeError("session factory yielded no session")

    async def draw_feed(
        self,
        ctx: EventContext,
        animal: AnimalRef,
        feed_item_id: uuid.UUID,
        quantity: float,
        details: dict[str, Any],
    ) -> uuid.UUID:
        """Draw stock and record the feeding in one transaction.

        Raises:
            EntityOperationError: If the remaining stock is below ``quantity``.
        """
        async for session in self._session_factory():
            async with session.begin():
                result = await session.execute(
                    update(FeedInventoryItem)
                    .where(
                        FeedInventoryItem.tenant_id == ctx.tenant_id,
                        FeedInventoryItem.id == feed_item_id,
                        FeedInventoryItem.quantity >= quantity,
                    )
                    .values(quantity=FeedInventoryItem.quantity - quantity, updated_at=ctx.occurred_at)
                    .returning(FeedInventoryItem.quantity)
                )
                remaining = result.scalar_one_or_none()
                if remaining is None:
                    raise EntityOperationError("Insufficient stock")
                event = _event(ctx, animal, {**details, "remainingStock": remaining})
                session.add(event)
            return event.id
        raise RuntimeError("session factory yielded no session")

    # ── Idempotency ─────────────────────────────────────────────────────

    async def get_batch_run(self, tenant_id: uuid.UUID, key: str) -> StoredBatchRun | None:
        async for session in self._session_factory():
            row = (
                await session.execute(
                    select(BatchRun.operation, BatchRun.response).where(
                        BatchRun.tenant_id == tenant_id,
                        BatchRun.idempotency_key == key,
                    )
                )
            ).first()
            return StoredBatchRun(operation=row.operation, response=row.response) if row else None
        return None

    async def save_batch_run(self, tenant_id: uuid.UUID, key: str, operation: str, response: dict[str, Any]) -> None:
        """Store the first response for a key; a concurrent duplicate is ignored."""
        async for session in self._session_factory():
            await session.execute(
                insert(BatchRun)
                .values(
                    id=uuid.uuid4(),
                    tenant_id=tenant_id,
                    idempotency_key=key,
                    operation=operation,
                    response=response,
                )
                .on_conflict_do_nothing(constraint="uq_batch_runs_tenant_key")
            )
            await session.commit()


def _event(ctx: EventContext, animal: AnimalRef, details: dict[str, Any]) -> AnimalEvent:
    return AnimalEvent(
        id=uuid.uuid4(),
        tenant_id=ctx.tenant_id,
        animal_id=animal.id,
        event_type=ctx.event_type,
        occurred_at=ctx.occurred_at,
        details=details,
        created_by=ctx.actor,
        batch_id=ctx.batch_id,
    )
