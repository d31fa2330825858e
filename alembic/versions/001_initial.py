"""Initial schema: tenants, membership, herd, feed, IoT, tasks, batch runs.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _tenant_id() -> sa.Column:
    return sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    op.create_table(
        "tenants",
        _id(),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("plan", sa.String(20), server_default=sa.text("'free'")),
        _created_at(),
        _updated_at(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("slug", name="uq_tenants_slug"),
    )
    op.create_index("ix_tenants_deleted_at", "tenants", ["deleted_at"])

    op.create_table(
        "tenant_members",
        _id(),
        _tenant_id(),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), server_default=sa.text("'staff'")),
        _created_at(),
        sa.UniqueConstraint("tenant_id", "user_id", name="uq_tenant_members_tenant_user"),
    )
    op.create_index("ix_tenant_members_tenant_id", "tenant_members", ["tenant_id"])
    op.create_index("ix_tenant_members_user_id", "tenant_members", ["user_id"])

    op.create_table(
        "animals",
        _id(),
        _tenant_id(),
        sa.Column("tag", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("species", sa.String(50), nullable=False),
        sa.Column("breed", sa.String(100), nullable=True),
        sa.Column("gender", sa.String(10), nullable=False),
        sa.Column("status", sa.String(30), server_default=sa.text("'active'")),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_animals_tenant_tag", "animals", ["tenant_id", "tag"])
    op.create_index("ix_animals_tenant_status", "animals", ["tenant_id", "status"])

    op.create_table(
        "milk_records",
        _id(),
        _tenant_id(),
        sa.Column("animal_id", UUID(as_uuid=True), sa.ForeignKey("animals.id"), nullable=False),
        sa.Column("recorded_on", sa.Date(), nullable=False),
        sa.Column("session", sa.String(10), nullable=False),
        sa.Column("quantity_liters", sa.Float(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_milk_records_tenant_animal_day", "milk_records", ["tenant_id", "animal_id", "recorded_on"])

    op.create_table(
        "animal_events",
        _id(),
        _tenant_id(),
        sa.Column("animal_id", UUID(as_uuid=True), sa.ForeignKey("animals.id"), nullable=False),
        sa.Column("event_type", sa.String(30), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("details", JSONB(), server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("batch_id", UUID(as_uuid=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_animal_events_tenant_animal", "animal_events", ["tenant_id", "animal_id", "occurred_at"])
    op.create_index("ix_animal_events_batch_id", "animal_events", ["batch_id"])

    op.create_table(
        "feed_inventory",
        _id(),
        _tenant_id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("batch_number", sa.String(100), nullable=True),
        sa.Column("storage_location", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Float(), server_default=sa.text("0")),
        sa.Column("unit", sa.String(20), server_default=sa.text("'kg'")),
        sa.Column("minimum_stock", sa.Float(), server_default=sa.text("0")),
        sa.Column("unit_cost", sa.Float(), server_default=sa.text("0")),
        sa.Column("average_daily_consumption", sa.Float(), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_feed_inventory_tenant_active", "feed_inventory", ["tenant_id", "is_active"])

    op.create_table(
        "iot_devices",
        _id(),
        _tenant_id(),
        sa.Column("device_type", sa.String(30), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("serial", sa.String(255), nullable=False),
        sa.Column("animal_id", UUID(as_uuid=True), sa.ForeignKey("animals.id"), nullable=True),
        sa.Column("manufacturer", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'active'")),
        sa.Column("battery_level", sa.Integer(), nullable=True),
        sa.Column("last_sync", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_iot_devices_tenant_active", "iot_devices", ["tenant_id", "is_active"])

    op.create_table(
        "sensor_readings",
        _id(),
        _tenant_id(),
        sa.Column("device_id", UUID(as_uuid=True), sa.ForeignKey("iot_devices.id"), nullable=False),
        sa.Column("animal_id", UUID(as_uuid=True), sa.ForeignKey("animals.id"), nullable=True),
        sa.Column("data_type", sa.String(30), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quality", sa.String(10), server_default=sa.text("'good'")),
        sa.Column("alert_triggered", sa.Boolean(), server_default=sa.text("false")),
        _created_at(),
    )
    op.create_index("ix_sensor_readings_tenant_recorded", "sensor_readings", ["tenant_id", "recorded_at"])

    op.create_table(
        "task_assignments",
        _id(),
        _tenant_id(),
        sa.Column("assigned_to", sa.String(255), nullable=False),
        sa.Column("assigned_by", sa.String(255), nullable=False),
        sa.Column("task_type", sa.String(50), nullable=False),
        sa.Column("priority", sa.String(10), server_default=sa.text("'medium'")),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("animal_id", UUID(as_uuid=True), sa.ForeignKey("animals.id"), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_duration", sa.Integer(), nullable=True),
        sa.Column("actual_duration", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'")),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_task_assignments_tenant_due", "task_assignments", ["tenant_id", "due_date"])

    op.create_table(
        "batch_runs",
        _id(),
        _tenant_id(),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("operation", sa.String(30), nullable=False),
        sa.Column("response", JSONB(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("tenant_id", "idempotency_key", name="uq_batch_runs_tenant_key"),
    )


def downgrade() -> None:
    for table in (
        "batch_runs",
        "task_assignments",
        "sensor_readings",
        "iot_devices",
        "feed_inventory",
        "animal_events",
        "milk_records",
        "animals",
        "tenant_members",
        "tenants",
    ):
        op.drop_table(table)
