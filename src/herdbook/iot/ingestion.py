"""Sensor reading ingestion.

A reading is accepted only when its device (and animal, if given) belong to
the caller's tenant. ``alert_triggered`` is set when the value falls outside
the critical band of its data type, and the device's ``last_sync`` moves to
the time of ingestion.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import structlog
from pydantic import Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.herdbook.core.errors import NotFoundError
from src.herdbook.core.schemas import CamelModel, as_utc
from src.herdbook.models.enums import ReadingQuality, SensorDataType
from src.herdbook.models.farm import Animal
from src.herdbook.models.iot import IoTDevice, SensorReading
from src.herdbook.queries.derived import classify_reading

logger = structlog.get_logger(__name__)


class ReadingCreate(CamelModel):
    device_id: uuid.UUID
    animal_id: uuid.UUID | None = None
    data_type: SensorDataType
    value: float = Field(allow_inf_nan=False)
    unit: str | None = Field(default=None, max_length=20)
    recorded_at: datetime
    quality: ReadingQuality = "good"


class ReadingIngestor:
    """Stores sensor readings pushed by devices.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]) -> None:
        self._session_factory = session_factory

    async def ingest(self, tenant_id: str, data: ReadingCreate, now: datetime | None = None) -> SensorReading:
        """Insert one reading.

        Raises:
            NotFoundError: If the device or animal is not in the tenant.
        """
        tid = uuid.UUID(tenant_id)
        now = now or datetime.now(timezone.utc)
        recorded_at = as_utc(data.recorded_at)

        async for session in self._session_factory():
            device = await session.scalar(
                select(IoTDevice).where(IoTDevice.tenant_id == tid, IoTDevice.id == data.device_id)
            )
            if device is None:
                raise NotFoundError("Device not found", missing_ids=[str(data.device_id)])

            animal_id = data.animal_id or device.animal_id
            if data.animal_id is not None:
                found = await session.scalar(
                    select(Animal.id).where(
                        Animal.tenant_id == tid,
                        Animal.id == data.animal_id,
                        Animal.deleted_at.is_(None),
                    )
                )
                if found is None:
                    raise NotFoundError("Animal not found", missing_ids=[str(data.animal_id)])

            alert_triggered = classify_reading(data.data_type, data.value) == "critical"
            reading = SensorReading(
                id=uuid.uuid4(),
                tenant_id=tid,
                device_id=device.id,
                animal_id=animal_id,
                data_type=data.data_type,
                value=data.value,
                unit=data.unit,
                recorded_at=recorded_at,
                quality=data.quality,
                alert_triggered=alert_triggered,
                created_at=now,
            )
            session.add(reading)
            await session.execute(
                update(IoTDevice)
                .where(IoTDevice.tenant_id == tid, IoTDevice.id == device.id)
                .values(last_sync=now)
            )
            await session.commit()

            if alert_triggered:
                logger.warning(
                    "iot.alert_triggered",
                    tenant_id=tenant_id,
                    device_id=str(device.id),
                    data_type=data.data_type,
                    value=data.value,
                )
            return reading
        raise RuntimeError("session factory yielded no session")
