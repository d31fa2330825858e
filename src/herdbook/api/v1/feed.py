"""Feed inventory listing with tenant-wide analytics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request

from src.herdbook.api.deps import get_composer, get_feed_analytics, get_tenant
from src.herdbook.core.schemas import success_response
from src.herdbook.core.tenant import TenantContext
from src.herdbook.queries.listings import FEED

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("")
async def list_feed(
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
    composer: Any = Depends(get_composer),
    analytics: Any = Depends(get_feed_analytics),
) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    result = await composer.run(FEED, tenant.tenant_id, request.query_params, now=now)
    result["analytics"] = await analytics.summarize(tenant.tenant_id, now.date())
    return success_response(result)
