"""Base schema for the camelCase JSON wire format."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def as_utc(value: datetime | None) -> datetime | None:
    """Treat an offset-less timestamp as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while exposing snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def success_response(data: Any) -> dict[str, Any]:
    """Wrap a handler result in the ``{success: true, data}`` envelope."""
    return {"success": True, "data": data}
