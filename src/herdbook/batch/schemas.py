"""Pydantic schemas for batch operations.

The request envelope is validated by FastAPI; ``operationData`` is then
validated against the payload model of the requested operation, giving one
typed payload per operation (VaccinationPayload | TreatmentPayload | ...)
that the executor dispatches on.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import pydantic
from pydantic import Field, field_validator

from src.herdbook.core.errors import ValidationError
from src.herdbook.core.schemas import CamelModel, as_utc
from src.herdbook.models.enums import BatchOperation, TaskPriority


# ── Operation payloads ──────────────────────────────────────────────────────


class VaccinationPayload(CamelModel):
    vaccine_name: str = Field(min_length=1)
    vaccine_type: str | None = None
    batch_number: str | None = None
    manufacturer: str | None = None
    administered_by: str | None = None
    notes: str | None = None


class TreatmentPayload(CamelModel):
    treatment_name: str = Field(min_length=1)
    dosage: str = Field(min_length=1)
    frequency: str | None = None
    duration_days: int | None = Field(default=None, ge=1)
    prescribed_by: str | None = None
    notes: str | None = None


class RelocationPayload(CamelModel):
    to_location: str = Field(min_length=1)
    from_location: str | None = None
    transport_method: str | None = None
    notes: str | None = None


class FeedingPayload(CamelModel):
    feed_item_id: uuid.UUID
    quantity_per_animal: float = Field(gt=0)
    notes: str | None = None


class HealthCheckPayload(CamelModel):
    check_type: str = Field(min_length=1)
    veterinarian: str | None = None
    findings: str | None = None
    notes: str | None = None


class LabTestPayload(CamelModel):
    test_type: str = Field(min_length=1)
    laboratory: str = Field(min_length=1)
    sample_type: str | None = None
    notes: str | None = None


OperationPayload = (
    VaccinationPayload | TreatmentPayload | RelocationPayload | FeedingPayload | HealthCheckPayload | LabTestPayload
)

PAYLOAD_MODELS: dict[str, type[CamelModel]] = {
    "vaccination": VaccinationPayload,
    "treatment": TreatmentPayload,
    "relocation": RelocationPayload,
    "feeding": FeedingPayload,
    "health_check": HealthCheckPayload,
    "lab_test": LabTestPayload,
}


# ── Request ─────────────────────────────────────────────────────────────────


class BatchRequest(CamelModel):
    """POST /animals/batch-operations body."""

    operation: BatchOperation
    entity_ids: list[uuid.UUID] = Field(min_length=1)
    operation_data: dict[str, Any] = Field(default_factory=dict)
    scheduled_date: datetime | None = None
    priority: TaskPriority = "medium"
    assigned_to: str | None = None
    estimated_duration: int | None = Field(default=None, ge=1)
    create_task: bool = True
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=255)

    @field_validator("scheduled_date")
    @classmethod
    def _scheduled_date_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    def payload(self) -> OperationPayload:
        """Validate ``operationData`` against the operation's payload model.

        Raises:
            ValidationError: naming each offending ``operationData`` field.
        """
        model = PAYLOAD_MODELS[self.operation]
        try:
            return model.model_validate(self.operation_data)
        except pydantic.ValidationError as exc:
            fields: dict[str, str] = {}
            for err in exc.errors():
                loc = ".".join(str(part) for part in err.get("loc", ()))
                name = f"operationData.{loc}" if loc else "operationData"
                fields.setdefault(name, err.get("msg", "Invalid value"))
            raise ValidationError(fields, error=f"Invalid operationData for {self.operation}")


def unique_in_order(ids: list[uuid.UUID]) -> list[uuid.UUID]:
    """Collapse duplicate ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))
