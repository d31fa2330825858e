"""Parsing of flat listing query parameters.

Every parser raises ``ValidationError`` naming the offending parameter, so a
malformed value is rejected with a 400 before any statement is built.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any

from src.herdbook.core.errors import ValidationError

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


@dataclass
class ListParams:
    """A parsed listing request, ready to be compiled into predicates."""

    page: int = 1
    limit: int = 20
    sort_by: str | None = None
    sort_order: str = "desc"
    search: str | None = None
    categorical: dict[str, list[Any]] = field(default_factory=dict)
    ranges: dict[str, tuple[float | None, float | None]] = field(default_factory=dict)
    dates: dict[str, tuple[datetime | None, datetime | None]] = field(default_factory=dict)
    flags: dict[str, bool] = field(default_factory=dict)
    options: dict[str, int] = field(default_factory=dict)
    post_filters: dict[str, Any] = field(default_factory=dict)

    def applied(self) -> dict[str, Any]:
        """JSON-friendly echo of the filters this request applies."""
        applied: dict[str, Any] = {}
        if self.search:
            applied["search"] = self.search
        for name, values in self.categorical.items():
            applied[name] = [str(v) for v in values]
        for name, (low, high) in self.ranges.items():
            if low is not None:
                applied[f"{name}Min"] = low
            if high is not None:
                applied[f"{name}Max"] = high
        for name, (start, end) in self.dates.items():
            applied[name] = {
                "from": start.isoformat() if start else None,
                "to": end.isoformat() if end else None,
            }
        applied.update(self.flags)
        applied.update(self.options)
        for name, value in self.post_filters.items():
            applied[name] = sorted(value) if isinstance(value, (set, frozenset)) else value
        return applied


# ── Scalar parsers ──────────────────────────────────────────────────────────


def split_csv(value: str) -> list[str]:
    """Split a comma-separated value, dropping blanks and duplicates."""
    seen: dict[str, None] = {}
    for part in value.split(","):
        part = part.strip()
        if part:
            seen.setdefault(part, None)
    return list(seen)


def parse_int(name: str, value: str, minimum: int | None = None, maximum: int | None = None) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError({name: "must be an integer"})
    if minimum is not None and parsed < minimum:
        raise ValidationError({name: f"must be >= {minimum}"})
    if maximum is not None and parsed > maximum:
        raise ValidationError({name: f"must be <= {maximum}"})
    return parsed


def parse_float(name: str, value: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValidationError({name: "must be a number"})
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        raise ValidationError({name: "must be a finite number"})
    return parsed


def parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValidationError({name: "must be true or false"})


def parse_datetime(name: str, value: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC.

    A bare date used as an upper bound covers the whole day.
    """
    raw = value.strip()
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError({name: "must be an ISO-8601 date"})
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_uuid(name: str, value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationError({name: "must be a UUID"})


def parse_choices(
    name: str,
    value: str,
    choices: Iterable[str] | None = None,
    coerce: Callable[[str, str], Any] | None = None,
) -> list[Any]:
    """Parse a comma-separated categorical filter.

    Values outside ``choices`` (when given) are rejected; ``coerce`` converts
    each value, e.g. to a UUID.
    """
    values = split_csv(value)
    if not values:
        raise ValidationError({name: "must not be empty"})
    if choices is not None:
        allowed = set(choices)
        unknown = [v for v in values if v not in allowed]
        if unknown:
            raise ValidationError({name: f"unknown value(s): {', '.join(unknown)}"})
    if coerce is not None:
        return [coerce(name, v) for v in values]
    return values


def parse_paging(query: Mapping[str, str], default_limit: int, max_limit: int) -> tuple[int, int]:
    page = parse_int("page", query["page"], minimum=1) if query.get("page") else 1
    limit = parse_int("limit", query["limit"], minimum=1, maximum=max_limit) if query.get("limit") else default_limit
    return page, limit


def parse_sort(
    query: Mapping[str, str],
    allowed: Iterable[str],
    default_key: str,
    default_order: str = "desc",
) -> tuple[str, str]:
    sort_by = query.get("sortBy") or default_key
    allowed = list(allowed)
    if sort_by not in allowed:
        raise ValidationError({"sortBy": f"must be one of: {', '.join(allowed)}"})
    sort_order = (query.get("sortOrder") or default_order).lower()
    if sort_order not in ("asc", "desc"):
        raise ValidationError({"sortOrder": "must be asc or desc"})
    return sort_by, sort_order
