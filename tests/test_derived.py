"""Tests for read-time derived fields and their fixed thresholds."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from src.herdbook.queries.derived import (
    AnimalActivity,
    animal_fields,
    classify_reading,
    device_fields,
    device_health,
    feed_fields,
    reading_fields,
    stock_status,
    task_fields,
)

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


# ── Sensor readings ─────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "value, level",
    [(39.0, "normal"), (37.0, "warning"), (35.0, "critical"), (38.5, "normal"), (42.0, "warning"), (42.1, "critical")],
)
def test_temperature_bands(value, level):
    assert classify_reading("temperature", value) == level


@pytest.mark.parametrize(
    "data_type, value, level",
    [
        ("activity", 600, "normal"),
        ("activity", 300, "warning"),
        ("activity", 16000, "critical"),
        ("milk_yield", 3, "warning"),
        ("milk_yield", 1, "critical"),
        ("weight", 1100, "warning"),
        ("weight", 20, "critical"),
    ],
)
def test_other_bands(data_type, value, level):
    assert classify_reading(data_type, value) == level


def test_unknown_data_type_is_normal():
    assert classify_reading("humidity", -500) == "normal"


def test_reading_fields():
    reading = SimpleNamespace(data_type="temperature", value=37.0, recorded_at=NOW - timedelta(hours=5, minutes=30))
    fields = reading_fields(reading, NOW)
    assert fields == {"isNormal": False, "alertLevel": "warning", "ageHours": 5}


# ── Feed ────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "quantity, minimum, status",
    [(100, 100, "critical"), (150, 100, "low"), (200, 100, "adequate"), (300, 100, "overstock")],
)
def test_stock_status(quantity, minimum, status):
    assert stock_status(quantity, minimum) == status


def test_feed_fields():
    item = SimpleNamespace(
        quantity=120.0,
        unit_cost=2.5,
        minimum_stock=100.0,
        average_daily_consumption=25.0,
        expiry_date=date(2026, 6, 25),
    )
    fields = feed_fields(item, NOW.date())
    assert fields == {"totalValue": 300.0, "daysUntilExpiry": 10, "stockStatus": "low", "daysOfSupply": 4}


def test_feed_fields_expired_and_unknown_consumption():
    item = SimpleNamespace(
        quantity=10.0,
        unit_cost=1.0,
        minimum_stock=0.0,
        average_daily_consumption=None,
        expiry_date=date(2026, 6, 1),
    )
    fields = feed_fields(item, NOW.date())
    assert fields["daysUntilExpiry"] == 0
    assert fields["daysOfSupply"] is None


# ── Devices ─────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "status, battery, hours, health",
    [
        ("offline", 90, 0, "critical"),
        ("error", None, None, "critical"),
        ("active", 15, 0, "warning"),
        ("active", 80, 30, "warning"),
        ("maintenance", 80, 2, "maintenance"),
        ("active", 80, 2, "healthy"),
        ("active", None, None, "healthy"),
    ],
)
def test_device_health(status, battery, hours, health):
    assert device_health(status, battery, hours) == health


def test_device_fields_online_and_needs_attention():
    device = SimpleNamespace(status="active", battery_level=10, last_sync=NOW - timedelta(minutes=30))
    fields = device_fields(device, NOW)
    assert fields["hoursSinceLastSync"] == 0
    assert fields["isOnline"] is True
    assert fields["healthStatus"] == "warning"
    assert fields["needsAttention"] is True


def test_device_never_synced():
    device = SimpleNamespace(status="active", battery_level=None, last_sync=None)
    fields = device_fields(device, NOW)
    assert fields["hoursSinceLastSync"] is None
    assert fields["isOnline"] is False


# ── Tasks ───────────────────────────────────────────────────────────────────


def _task(**overrides):
    values = dict(
        due_date=NOW - timedelta(days=1),
        status="pending",
        priority="urgent",
        estimated_duration=30,
        actual_duration=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_open_task_past_due_is_overdue():
    fields = task_fields(_task(), NOW)
    assert fields["isOverdue"] is True
    assert fields["daysUntilDue"] == -1
    assert fields["priorityWeight"] == 4
    assert fields["efficiency"] is None


def test_completed_task_is_never_overdue():
    fields = task_fields(_task(status="completed", actual_duration=40), NOW)
    assert fields["isOverdue"] is False
    assert fields["efficiency"] == 75


def test_days_until_due_rounds_up():
    fields = task_fields(_task(due_date=NOW + timedelta(hours=30), priority="low"), NOW)
    assert fields["daysUntilDue"] == 2
    assert fields["priorityWeight"] == 1


# ── Animals ─────────────────────────────────────────────────────────────────


def test_animal_fields_with_activity():
    animal = SimpleNamespace(date_of_birth=date(2024, 3, 20))
    activity = AnimalActivity(
        daily_milk_totals=[20.0, 24.0, 22.0],
        milk_record_count=6,
        last_event_at=NOW - timedelta(days=3, hours=2),
    )
    fields = animal_fields(animal, activity, NOW)
    assert fields == {
        "averageDailyMilk30d": 22.0,
        "milkRecordCount30d": 6,
        "daysSinceLastEvent": 3,
        "ageMonths": 26,
    }


def test_animal_fields_without_activity():
    fields = animal_fields(SimpleNamespace(date_of_birth=None), None, NOW)
    assert fields["averageDailyMilk30d"] is None
    assert fields["milkRecordCount30d"] == 0
    assert fields["daysSinceLastEvent"] is None
    assert fields["ageMonths"] is None
