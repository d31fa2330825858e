"""IoT endpoints: device and reading listings, reading ingestion."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from src.herdbook.api.deps import get_composer, get_reading_ingestor, get_tenant
from src.herdbook.core.schemas import success_response
from src.herdbook.core.tenant import TenantContext
from src.herdbook.iot.ingestion import ReadingCreate
from src.herdbook.queries.derived import reading_fields
from src.herdbook.queries.listings import DEVICES, READINGS, serialize_reading

router = APIRouter(prefix="/iot", tags=["iot"])


@router.get("/devices")
async def list_devices(
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
    composer: Any = Depends(get_composer),
) -> dict[str, Any]:
    return success_response(await composer.run(DEVICES, tenant.tenant_id, request.query_params))


@router.get("/readings")
async def list_readings(
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
    composer: Any = Depends(get_composer),
) -> dict[str, Any]:
    return success_response(await composer.run(READINGS, tenant.tenant_id, request.query_params))


@router.post("/readings", status_code=status.HTTP_201_CREATED)
async def ingest_reading(
    body: ReadingCreate,
    tenant: TenantContext = Depends(get_tenant),
    ingestor: Any = Depends(get_reading_ingestor),
) -> dict[str, Any]:
    """Store a reading pushed by a device of the caller's tenant."""
    now = datetime.now(timezone.utc)
    reading = await ingestor.ingest(tenant.tenant_id, body, now=now)
    return success_response({**serialize_reading(reading), **reading_fields(reading, now)})
