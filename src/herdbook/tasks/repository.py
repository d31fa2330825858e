"""Task assignment persistence, always scoped to one tenant."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.herdbook.core.errors import NotFoundError
from src.herdbook.models.farm import Animal
from src.herdbook.models.tasks import TaskAssignment
from src.herdbook.tasks.schemas import TaskCreate, TaskUpdate

logger = structlog.get_logger(__name__)


def apply_update(task: TaskAssignment, update: TaskUpdate, now: datetime) -> None:
    """Apply a partial update in place.

    ``completed_at`` is stamped on the first transition into ``completed``
    and never overwritten afterwards.
    """
    fields = update.model_dump(exclude_unset=True)
    for name, value in fields.items():
        setattr(task, name, value)
    if task.status == "completed" and task.completed_at is None:
        task.completed_at = now


class TaskRepository:
    """Creates, reads and updates TaskAssignment rows.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]) -> None:
        self._session_factory = session_factory

    async def create(self, tenant_id: str, assigned_by: str, data: TaskCreate) -> TaskAssignment:
        """Insert a pending task.

        Raises:
            NotFoundError: If ``animal_id`` does not belong to the tenant.
        """
        tid = uuid.UUID(tenant_id)
        async for session in self._session_factory():
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

            now = datetime.now(timezone.utc)
            task = TaskAssignment(
                id=uuid.uuid4(),
                tenant_id=tid,
                assigned_by=assigned_by,
                status="pending",
                created_at=now,
                **data.model_dump(),
            )
            session.add(task)
            await session.commit()
            logger.info("task.created", tenant_id=tenant_id, task_id=str(task.id), task_type=task.task_type)
            return task
        raise RuntimeError("session factory yielded no session")

    async def get(self, tenant_id: str, task_id: uuid.UUID) -> TaskAssignment | None:
        async for session in self._session_factory():
            return await session.scalar(
                select(TaskAssignment).where(
                    TaskAssignment.tenant_id == uuid.UUID(tenant_id),
                    TaskAssignment.id == task_id,
                )
            )
        return None

    async def update(self, tenant_id: str, task_id: uuid.UUID, update: TaskUpdate) -> TaskAssignment:
        """Apply a partial update to a task of the tenant.

        Raises:
            NotFoundError: If the task does not exist in the tenant.
        """
        async for session in self._session_factory():
            task = await session.scalar(
                select(TaskAssignment)
                .where(
                    TaskAssignment.tenant_id == uuid.UUID(tenant_id),
                    TaskAssignment.id == task_id,
                )
                .with_for_update()
            )
            if task is None:
                raise NotFoundError("Task not found", missing_ids=[str(task_id)])

            now = datetime.now(timezone.utc)
            apply_update(task, update, now)
            task.updated_at = now
            await session.commit()
            logger.info("task.updated", tenant_id=tenant_id, task_id=str(task_id), status=task.status)
            return task
        raise RuntimeError("session factory yielded no session")
