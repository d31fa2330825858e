"""Derived, never-persisted fields computed at read time.

Every function takes the instant of the read (``now``/``today``) explicitly so
a whole listing page is computed against one snapshot. Inputs are read by
attribute, so ORM rows and plain namespaces both work.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

# ── Sensor readings ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SensorBand:
    normal_min: float
    normal_max: float
    critical_min: float
    critical_max: float


SENSOR_BANDS: dict[str, SensorBand] = {
    "temperature": SensorBand(38.5, 39.5, 36.0, 42.0),
    "activity": SensorBand(500, 10000, 200, 15000),
    "milk_yield": SensorBand(5, 50, 2, 60),
    "weight": SensorBand(50, 1000, 30, 1200),
}


def classify_reading(data_type: str, value: float) -> str:
    """Return ``normal``, ``warning`` or ``critical`` for a sensor value.

    Bands are inclusive. Unknown data types are always ``normal``.
    """
    band = SENSOR_BANDS.get(data_type)
    if band is None:
        return "normal"
    if band.normal_min <= value <= band.normal_max:
        return "normal"
    if band.critical_min <= value <= band.critical_max:
        return "warning"
    return "critical"


def reading_fields(reading: Any, now: datetime) -> dict[str, Any]:
    alert_level = classify_reading(reading.data_type, reading.value)
    return {
        "isNormal": alert_level == "normal",
        "alertLevel": alert_level,
        "ageHours": _whole_hours(now - reading.recorded_at),
    }


# ── Feed inventory ──────────────────────────────────────────────────────────


def stock_status(quantity: float, minimum_stock: float) -> str:
    if quantity <= minimum_stock:
        return "critical"
    if quantity <= minimum_stock * 1.5:
        return "low"
    if quantity >= minimum_stock * 3:
        return "overstock"
    return "adequate"


def feed_fields(item: Any, today: date) -> dict[str, Any]:
    days_until_expiry = None
    if item.expiry_date is not None:
        days_until_expiry = max(0, (item.expiry_date - today).days)

    days_of_supply = None
    if item.average_daily_consumption:
        days_of_supply = math.floor(item.quantity / item.average_daily_consumption)

    return {
        "totalValue": round(item.quantity * item.unit_cost, 2),
        "daysUntilExpiry": days_until_expiry,
        "stockStatus": stock_status(item.quantity, item.minimum_stock),
        "daysOfSupply": days_of_supply,
    }


# ── IoT devices ─────────────────────────────────────────────────────────────

LOW_BATTERY_THRESHOLD = 20
STALE_SYNC_HOURS = 24


def device_health(status: str, battery_level: int | None, hours_since_sync: int | None) -> str:
    if status in ("error", "offline"):
        return "critical"
    if battery_level is not None and battery_level < LOW_BATTERY_THRESHOLD:
        return "warning"
    if hours_since_sync is not None and hours_since_sync > STALE_SYNC_HOURS:
        return "warning"
    if status == "maintenance":
        return "maintenance"
    return "healthy"


def device_fields(device: Any, now: datetime) -> dict[str, Any]:
    hours = _whole_hours(now - device.last_sync) if device.last_sync is not None else None
    health = device_health(device.status, device.battery_level, hours)
    return {
        "hoursSinceLastSync": hours,
        "healthStatus": health,
        "isOnline": hours is not None and hours <= 1,
        "needsAttention": health in ("warning", "critical"),
    }


# ── Tasks ───────────────────────────────────────────────────────────────────

PRIORITY_WEIGHTS = {"urgent": 4, "high": 3, "medium": 2, "low": 1}
OPEN_TASK_STATUSES = ("pending", "in_progress")


def task_fields(task: Any, now: datetime) -> dict[str, Any]:
    seconds_left = (task.due_date - now).total_seconds()
    efficiency = None
    if task.status == "completed" and task.estimated_duration and task.actual_duration:
        efficiency = round(task.estimated_duration / task.actual_duration * 100)
    return {
        "isOverdue": seconds_left < 0 and task.status in OPEN_TASK_STATUSES,
        "daysUntilDue": math.ceil(seconds_left / 86400),
        "efficiency": efficiency,
        "priorityWeight": PRIORITY_WEIGHTS.get(task.priority, 0),
    }


# ── Animals ─────────────────────────────────────────────────────────────────


@dataclass
class AnimalActivity:
    """Per-animal aggregates fetched alongside a listing page."""

    daily_milk_totals: list[float]
    milk_record_count: int = 0
    last_event_at: datetime | None = None


def animal_fields(animal: Any, activity: AnimalActivity | None, now: datetime) -> dict[str, Any]:
    activity = activity or AnimalActivity(daily_milk_totals=[])
    average = None
    if activity.daily_milk_totals:
        average = round(sum(activity.daily_milk_totals) / len(activity.daily_milk_totals), 2)

    days_since_event = None
    if activity.last_event_at is not None:
        days_since_event = (now - activity.last_event_at).days

    age_months = None
    if animal.date_of_birth is not None:
        today = now.date()
        age_months = (today.year - animal.date_of_birth.year) * 12 + (today.month - animal.date_of_birth.month)
        if today.day < animal.date_of_birth.day:
            age_months -= 1
        age_months = max(0, age_months)

    return {
        "averageDailyMilk30d": average,
        "milkRecordCount30d": activity.milk_record_count,
        "daysSinceLastEvent": days_since_event,
        "ageMonths": age_months,
    }


def _whole_hours(delta) -> int:
    return math.floor(delta.total_seconds() / 3600)
