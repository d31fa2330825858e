"""Task assignment endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from src.herdbook.api.deps import get_composer, get_task_repository, get_tenant
from src.herdbook.core.schemas import success_response
from src.herdbook.core.tenant import TenantContext
from src.herdbook.queries.derived import task_fields
from src.herdbook.queries.listings import TASKS, serialize_task
from src.herdbook.tasks.schemas import TaskCreate, TaskUpdate

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _task_body(task: Any) -> dict[str, Any]:
    return success_response({**serialize_task(task), **task_fields(task, datetime.now(timezone.utc))})


@router.get("")
async def list_tasks(
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
    composer: Any = Depends(get_composer),
) -> dict[str, Any]:
    return success_response(await composer.run(TASKS, tenant.tenant_id, request.query_params))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    tenant: TenantContext = Depends(get_tenant),
    tasks: Any = Depends(get_task_repository),
) -> dict[str, Any]:
    task = await tasks.create(tenant.tenant_id, tenant.user_id, body)
    return _task_body(task)


@router.patch("/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    tenant: TenantContext = Depends(get_tenant),
    tasks: Any = Depends(get_task_repository),
) -> dict[str, Any]:
    """Update status, duration or notes. ``completedAt`` is set once, on first completion."""
    task = await tasks.update(tenant.tenant_id, task_id, body)
    return _task_body(task)
