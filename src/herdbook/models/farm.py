"""Herd and feed persistence models -- tenant-scoped tables.

Every row carries tenant_id; every foreign reference points at a row of the
same tenant (enforced by the writers, since a plain FK cannot express it).

- Animal: the herd register (soft-deleted via deleted_at)
- MilkRecord: per-session milk yield, source of the 30-day production average
- AnimalEvent: one row per animal per applied batch operation
- FeedInventoryItem: stock on hand, drawn down by feeding batches
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.herdbook.core.database import Base


def _uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


def _tenant_fk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)


class Animal(Base):
    """A registered animal."""

    __tablename__ = "animals"
    __table_args__ = (
        Index("ix_animals_tenant_tag", "tenant_id", "tag"),
        Index("ix_animals_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    tenant_id: Mapped[uuid.UUID] = _tenant_fk()
    tag: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    species: Mapped[str] = mapped_column(String(50), nullable=False)
    breed: Mapped[str | None] = mapped_column(String(100), nullable=True)
    gender: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="active", server_default=text("'active'"))
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class MilkRecord(Base):
    """Milk yield for one animal and one milking session."""

    __tablename__ = "milk_records"
    __table_args__ = (Index("ix_milk_records_tenant_animal_day", "tenant_id", "animal_id", "recorded_on"),)

    id: Mapped[uuid.UUID] = _uuid_pk()
    tenant_id: Mapped[uuid.UUID] = _tenant_fk()
    animal_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("animals.id"), nullable=False)
    recorded_on: Mapped[date] = mapped_column(Date, nullable=False)
    session: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity_liters: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class AnimalEvent(Base):
    """A health, movement, feeding or lab event recorded against an animal.

    ``details`` stores the typed operation payload serialized with
    ``model_dump(mode="json")``.
    """

    __tablename__ = "animal_events"
    __table_args__ = (Index("ix_animal_events_tenant_animal", "tenant_id", "animal_id", "occurred_at"),)

    id: Mapped[uuid.UUID] = _uuid_pk()
    tenant_id: Mapped[uuid.UUID] = _tenant_fk()
    animal_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("animals.id"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    details: Mapped[dict] = mapped_column(JSONB, default=dict, server_default=text("'{}'::jsonb"))
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    batch_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class FeedInventoryItem(Base):
    """A feed lot on hand."""

    __tablename__ = "feed_inventory"
    __table_args__ = (Index("ix_feed_inventory_tenant_active", "tenant_id", "is_active"),)

    id: Mapped[uuid.UUID] = _uuid_pk()
    tenant_id: Mapped[uuid.UUID] = _tenant_fk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    storage_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, default=0.0, server_default=text("0"))
    unit: Mapped[str] = mapped_column(String(20), default="kg", server_default=text("'kg'"))
    minimum_stock: Mapped[float] = mapped_column(Float, default=0.0, server_default=text("0"))
    unit_cost: Mapped[float] = mapped_column(Float, default=0.0, server_default=text("0"))
    average_daily_consumption: Mapped[float | None] = mapped_column(Float, nullable=True)
    purchase_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
