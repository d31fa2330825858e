"""Listing declarations for the enhanced endpoints.

One ListingSpec per entity: search columns, filters, sort allow-list,
facets, serializer, derived fields and page summary.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.herdbook.models.enums import (
    DEVICE_STATUSES,
    DEVICE_TYPES,
    READING_QUALITIES,
    SENSOR_DATA_TYPES,
    TASK_PRIORITIES,
    TASK_STATUSES,
)
from src.herdbook.models.farm import Animal, AnimalEvent, FeedInventoryItem, MilkRecord
from src.herdbook.models.iot import IoTDevice, SensorReading
from src.herdbook.models.tasks import TaskAssignment
from src.herdbook.queries import derived
from src.herdbook.queries.composer import Categorical, DateRange, Flag, ListingSpec, Option, PostFilter
from src.herdbook.queries.params import ListParams, parse_uuid

EXPIRY_WINDOW_DAYS = 30
MILK_WINDOW_DAYS = 30


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def uuid_str(value: uuid.UUID | None) -> str | None:
    return str(value) if value is not None else None


# ── Serializers ─────────────────────────────────────────────────────────────


def serialize_animal(animal: Animal) -> dict[str, Any]:
    return {
        "id": str(animal.id),
        "tag": animal.tag,
        "name": animal.name,
        "species": animal.species,
        "breed": animal.breed,
        "gender": animal.gender,
        "status": animal.status,
        "location": animal.location,
        "dateOfBirth": iso(animal.date_of_birth),
        "weight": animal.weight,
        "notes": animal.notes,
        "createdAt": iso(animal.created_at),
        "updatedAt": iso(animal.updated_at),
    }


def serialize_feed_item(item: FeedInventoryItem) -> dict[str, Any]:
    return {
        "id": str(item.id),
        "name": item.name,
        "category": item.category,
        "supplier": item.supplier,
        "batchNumber": item.batch_number,
        "storageLocation": item.storage_location,
        "quantity": item.quantity,
        "unit": item.unit,
        "minimumStock": item.minimum_stock,
        "unitCost": item.unit_cost,
        "averageDailyConsumption": item.average_daily_consumption,
        "purchaseDate": iso(item.purchase_date),
        "expiryDate": iso(item.expiry_date),
        "isActive": item.is_active,
        "createdAt": iso(item.created_at),
        "updatedAt": iso(item.updated_at),
    }


def serialize_device(device: IoTDevice) -> dict[str, Any]:
    return {
        "id": str(device.id),
        "deviceType": device.device_type,
        "name": device.name,
        "serial": device.serial,
        "animalId": uuid_str(device.animal_id),
        "manufacturer": device.manufacturer,
        "status": device.status,
        "batteryLevel": device.battery_level,
        "lastSync": iso(device.last_sync),
        "isActive": device.is_active,
        "createdAt": iso(device.created_at),
    }


def serialize_reading(reading: SensorReading) -> dict[str, Any]:
    return {
        "id": str(reading.id),
        "deviceId": str(reading.device_id),
        "animalId": uuid_str(reading.animal_id),
        "dataType": reading.data_type,
        "value": reading.value,
        "unit": reading.unit,
        "recordedAt": iso(reading.recorded_at),
        "quality": reading.quality,
        "alertTriggered": reading.alert_triggered,
        "createdAt": iso(reading.created_at),
    }


def serialize_task(task: TaskAssignment) -> dict[str, Any]:
    return {
        "id": str(task.id),
        "assignedTo": task.assigned_to,
        "assignedBy": task.assigned_by,
        "taskType": task.task_type,
        "priority": task.priority,
        "title": task.title,
        "description": task.description,
        "animalId": uuid_str(task.animal_id),
        "dueDate": iso(task.due_date),
        "estimatedDuration": task.estimated_duration,
        "actualDuration": task.actual_duration,
        "status": task.status,
        "completionNotes": task.completion_notes,
        "createdAt": iso(task.created_at),
        "updatedAt": iso(task.updated_at),
        "completedAt": iso(task.completed_at),
    }


# ── Page summaries ──────────────────────────────────────────────────────────


def _count(items: list[dict[str, Any]], key: str, value: Any) -> int:
    return sum(1 for item in items if item.get(key) == value)


def summarize_animals(items: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "totalAnimals": len(items),
        "activeAnimals": _count(items, "status", "active"),
        "withMilkRecords": sum(1 for item in items if item["milkRecordCount30d"]),
    }


def summarize_feed(items: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "totalItems": len(items),
        "lowStockItems": sum(1 for item in items if item["stockStatus"] in ("critical", "low")),
        "expiringSoonItems": sum(
            1
            for item in items
            if item["daysUntilExpiry"] is not None and item["daysUntilExpiry"] <= EXPIRY_WINDOW_DAYS
        ),
        "totalValue": round(sum(item["totalValue"] for item in items), 2),
    }


def summarize_devices(items: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "totalDevices": len(items),
        "activeDevices": _count(items, "status", "active"),
        "offlineDevices": _count(items, "status", "offline"),
        "errorDevices": _count(items, "status", "error"),
        "lowBatteryDevices": sum(
            1
            for item in items
            if item["batteryLevel"] is not None and item["batteryLevel"] < derived.LOW_BATTERY_THRESHOLD
        ),
        "needsAttentionDevices": _count(items, "needsAttention", True),
    }


def summarize_readings(items: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "totalReadings": len(items),
        "normalReadings": _count(items, "alertLevel", "normal"),
        "warningReadings": _count(items, "alertLevel", "warning"),
        "criticalReadings": _count(items, "alertLevel", "critical"),
        "alertsTriggered": _count(items, "alertTriggered", True),
    }


def summarize_tasks(items: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "totalTasks": len(items),
        "pendingTasks": _count(items, "status", "pending"),
        "inProgressTasks": _count(items, "status", "in_progress"),
        "completedTasks": _count(items, "status", "completed"),
        "overdueTasks": _count(items, "isOverdue", True),
        "urgentTasks": _count(items, "priority", "urgent"),
    }


# ── Animal activity enrichment ──────────────────────────────────────────────


async def load_animal_activity(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    animals: list[Animal],
    now: datetime,
) -> dict[uuid.UUID, derived.AnimalActivity]:
    """Milk totals per day over the trailing window and newest event per animal."""
    ids = [animal.id for animal in animals]
    since = now.date() - timedelta(days=MILK_WINDOW_DAYS)
    activity: dict[uuid.UUID, derived.AnimalActivity] = {}

    milk = await session.execute(
        select(
            MilkRecord.animal_id,
            MilkRecord.recorded_on,
            func.sum(MilkRecord.quantity_liters),
            func.count(),
        )
        .where(
            MilkRecord.tenant_id == tenant_id,
            MilkRecord.animal_id.in_(ids),
            MilkRecord.recorded_on >= since,
        )
        .group_by(MilkRecord.animal_id, MilkRecord.recorded_on)
    )
    for animal_id, _day, total, count in milk.all():
        entry = activity.setdefault(animal_id, derived.AnimalActivity(daily_milk_totals=[]))
        entry.daily_milk_totals.append(float(total))
        entry.milk_record_count += count

    events = await session.execute(
        select(AnimalEvent.animal_id, func.max(AnimalEvent.occurred_at))
        .where(AnimalEvent.tenant_id == tenant_id, AnimalEvent.animal_id.in_(ids))
        .group_by(AnimalEvent.animal_id)
    )
    for animal_id, last_event_at in events.all():
        entry = activity.setdefault(animal_id, derived.AnimalActivity(daily_milk_totals=[]))
        entry.last_event_at = last_event_at

    return activity


# ── Flags ───────────────────────────────────────────────────────────────────


def _low_stock(value: bool, params: ListParams, now: datetime):
    return FeedInventoryItem.quantity <= FeedInventoryItem.minimum_stock if value else None


def _expiring_soon(value: bool, params: ListParams, now: datetime):
    if not value:
        return None
    horizon = now.date() + timedelta(days=params.options.get("expiryDays", EXPIRY_WINDOW_DAYS))
    return FeedInventoryItem.expiry_date.is_not(None) & (FeedInventoryItem.expiry_date <= horizon)


def _low_battery(value: bool, params: ListParams, now: datetime):
    return IoTDevice.battery_level < derived.LOW_BATTERY_THRESHOLD if value else None


def _alert_triggered(value: bool, params: ListParams, now: datetime):
    return SensorReading.alert_triggered.is_(value)


def _overdue(value: bool, params: ListParams, now: datetime):
    if not value:
        return None
    return (TaskAssignment.due_date < now) & TaskAssignment.status.in_(derived.OPEN_TASK_STATUSES)


# ── Specs ───────────────────────────────────────────────────────────────────

ANIMALS = ListingSpec(
    entity="animals",
    model=Animal,
    serialize=serialize_animal,
    derive=lambda animal, activity, now: derived.animal_fields(animal, activity, now),
    summarize=summarize_animals,
    search_columns=(Animal.tag, Animal.name),
    categorical={
        "species": Categorical(Animal.species),
        "breed": Categorical(Animal.breed),
        "gender": Categorical(Animal.gender),
        "status": Categorical(Animal.status),
    },
    ranges={"weight": Animal.weight},
    date_ranges={"added": DateRange("addedAfter", "addedBefore", Animal.created_at)},
    sort_keys={
        "name": Animal.name,
        "tag": Animal.tag,
        "date_of_birth": Animal.date_of_birth,
        "breed": Animal.breed,
        "created_at": Animal.created_at,
    },
    default_sort="created_at",
    facets={
        "species": Animal.species,
        "breeds": Animal.breed,
        "statuses": Animal.status,
        "genders": Animal.gender,
    },
    base_predicates=lambda: [Animal.deleted_at.is_(None)],
    enrich=load_animal_activity,
)

FEED = ListingSpec(
    entity="feed",
    model=FeedInventoryItem,
    serialize=serialize_feed_item,
    derive=lambda item, _extra, now: derived.feed_fields(item, now.date()),
    summarize=summarize_feed,
    search_columns=(
        FeedInventoryItem.name,
        FeedInventoryItem.supplier,
        FeedInventoryItem.batch_number,
        FeedInventoryItem.storage_location,
    ),
    categorical={"category": Categorical(FeedInventoryItem.category)},
    ranges={"stock": FeedInventoryItem.quantity, "cost": FeedInventoryItem.unit_cost},
    flags={"lowStock": Flag(_low_stock), "expiringSoon": Flag(_expiring_soon)},
    options={"expiryDays": Option(default=EXPIRY_WINDOW_DAYS)},
    post_filters={"stockStatus": PostFilter("stockStatus", ("critical", "low", "adequate", "overstock"))},
    sort_keys={
        "name": FeedInventoryItem.name,
        "category": FeedInventoryItem.category,
        "currentStock": FeedInventoryItem.quantity,
        "expiryDate": FeedInventoryItem.expiry_date,
        "unitCost": FeedInventoryItem.unit_cost,
    },
    default_sort="name",
    default_order="asc",
    facets={
        "categories": FeedInventoryItem.category,
        "storageLocations": FeedInventoryItem.storage_location,
    },
    base_predicates=lambda: [FeedInventoryItem.is_active.is_(True)],
)

DEVICES = ListingSpec(
    entity="iot_devices",
    model=IoTDevice,
    serialize=serialize_device,
    derive=lambda device, _extra, now: derived.device_fields(device, now),
    summarize=summarize_devices,
    search_columns=(IoTDevice.name, IoTDevice.serial),
    categorical={
        "deviceType": Categorical(IoTDevice.device_type, DEVICE_TYPES),
        "status": Categorical(IoTDevice.status, DEVICE_STATUSES),
    },
    ranges={"battery": IoTDevice.battery_level},
    flags={"lowBattery": Flag(_low_battery)},
    post_filters={
        "healthStatus": PostFilter("healthStatus", ("healthy", "warning", "critical", "maintenance")),
    },
    sort_keys={
        "name": IoTDevice.name,
        "lastSync": IoTDevice.last_sync,
        "batteryLevel": IoTDevice.battery_level,
        "createdAt": IoTDevice.created_at,
    },
    default_sort="lastSync",
    facets={
        "deviceTypes": IoTDevice.device_type,
        "statuses": IoTDevice.status,
        "manufacturers": IoTDevice.manufacturer,
    },
    base_predicates=lambda: [IoTDevice.is_active.is_(True)],
)

READINGS = ListingSpec(
    entity="sensor_readings",
    model=SensorReading,
    serialize=serialize_reading,
    derive=lambda reading, _extra, now: derived.reading_fields(reading, now),
    summarize=summarize_readings,
    categorical={
        "dataType": Categorical(SensorReading.data_type, SENSOR_DATA_TYPES),
        "quality": Categorical(SensorReading.quality, READING_QUALITIES),
        "deviceId": Categorical(SensorReading.device_id, coerce=parse_uuid),
        "animalId": Categorical(SensorReading.animal_id, coerce=parse_uuid),
    },
    ranges={"value": SensorReading.value},
    date_ranges={"recorded": DateRange("startDate", "endDate", SensorReading.recorded_at)},
    flags={"alertTriggered": Flag(_alert_triggered)},
    post_filters={"alertLevel": PostFilter("alertLevel", ("normal", "warning", "critical"))},
    sort_keys={"recordedAt": SensorReading.recorded_at, "value": SensorReading.value},
    default_sort="recordedAt",
    facets={"dataTypes": SensorReading.data_type, "qualities": SensorReading.quality},
)

TASKS = ListingSpec(
    entity="tasks",
    model=TaskAssignment,
    serialize=serialize_task,
    derive=lambda task, _extra, now: derived.task_fields(task, now),
    summarize=summarize_tasks,
    search_columns=(TaskAssignment.title, TaskAssignment.description),
    categorical={
        "status": Categorical(TaskAssignment.status, TASK_STATUSES),
        "priority": Categorical(TaskAssignment.priority, TASK_PRIORITIES),
        "taskType": Categorical(TaskAssignment.task_type),
        "assignedTo": Categorical(TaskAssignment.assigned_to),
    },
    date_ranges={"due": DateRange("dueAfter", "dueBefore", TaskAssignment.due_date)},
    flags={"overdue": Flag(_overdue)},
    post_filters={"isOverdue": PostFilter("isOverdue")},
    sort_keys={
        "dueDate": TaskAssignment.due_date,
        "priority": case(derived.PRIORITY_WEIGHTS, value=TaskAssignment.priority, else_=0),
        "createdAt": TaskAssignment.created_at,
        "status": TaskAssignment.status,
    },
    default_sort="dueDate",
    default_order="asc",
    facets={
        "statuses": TaskAssignment.status,
        "priorities": TaskAssignment.priority,
        "taskTypes": TaskAssignment.task_type,
        "assignees": TaskAssignment.assigned_to,
    },
)
