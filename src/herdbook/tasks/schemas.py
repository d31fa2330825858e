"""Pydantic schemas for task assignments."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field, field_validator

from src.herdbook.core.schemas import CamelModel, as_utc
from src.herdbook.models.enums import TaskPriority, TaskStatus


class TaskCreate(CamelModel):
    """Schema for creating a task assignment."""

    assigned_to: str = Field(min_length=1)
    task_type: str = Field(min_length=1, max_length=50)
    priority: TaskPriority = "medium"
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    animal_id: uuid.UUID | None = None
    due_date: datetime
    estimated_duration: int | None = Field(default=None, ge=1)

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class TaskUpdate(CamelModel):
    """Partial update; only fields present in the body are applied.

    ``status`` may be omitted but not sent as null.
    """

    status: TaskStatus | None = None
    actual_duration: int | None = Field(default=None, ge=0)
    completion_notes: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _status_not_null(cls, v: object) -> object:
        if v is None:
            raise ValueError("status cannot be null")
        return v
