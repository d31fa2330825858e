"""Animal endpoints: enhanced listing and batch operations."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from src.herdbook.api.deps import get_batch_executor, get_composer, get_tenant
from src.herdbook.batch.schemas import BatchRequest
from src.herdbook.core.schemas import success_response
from src.herdbook.core.tenant import TenantContext
from src.herdbook.queries.listings import ANIMALS

router = APIRouter(prefix="/animals", tags=["animals"])


@router.get("")
async def list_animals(
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
    composer: Any = Depends(get_composer),
) -> dict[str, Any]:
    """List the tenant's animals with search, filters, sorting and facets."""
    return success_response(await composer.run(ANIMALS, tenant.tenant_id, request.query_params))


@router.post("/batch-operations")
async def run_batch_operation(
    body: BatchRequest,
    tenant: TenantContext = Depends(get_tenant),
    executor: Any = Depends(get_batch_executor),
) -> dict[str, Any]:
    """Apply one operation to many animals.

    Partial success is still a 200; per-animal outcomes are in
    ``operationResults``.
    """
    return success_response(await executor.execute(tenant, body))
