"""Closed value sets shared by request schemas and listing filters."""

from __future__ import annotations

from typing import Literal, get_args

BatchOperation = Literal["vaccination", "treatment", "relocation", "feeding", "health_check", "lab_test"]
DeviceType = Literal[
    "milk_meter",
    "activity_monitor",
    "temperature_sensor",
    "automatic_feeder",
    "water_meter",
    "gps_tracker",
]
DeviceStatus = Literal["active", "inactive", "maintenance", "error", "offline"]
SensorDataType = Literal["temperature", "activity", "milk_yield", "weight"]
ReadingQuality = Literal["good", "fair", "poor"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
TaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]

DEVICE_TYPES: tuple[str, ...] = get_args(DeviceType)
DEVICE_STATUSES: tuple[str, ...] = get_args(DeviceStatus)
SENSOR_DATA_TYPES: tuple[str, ...] = get_args(SensorDataType)
READING_QUALITIES: tuple[str, ...] = get_args(ReadingQuality)
TASK_PRIORITIES: tuple[str, ...] = get_args(TaskPriority)
TASK_STATUSES: tuple[str, ...] = get_args(TaskStatus)
