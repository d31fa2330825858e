"""Batch mutation executor.

Applies one operation to many animals of the caller's tenant:

1. validate the typed payload and collapse duplicate ids;
2. replay a stored response when the idempotency key was seen before;
3. pre-validate every id with one tenant-scoped lookup (any miss is a 404
   and nothing is written);
4. apply the operation animal by animal, each in its own transaction,
   recording failures inline and continuing;
5. optionally create one follow-up task, whose failure never undoes the
   entity writes.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError

from src.herdbook.batch.repository import AnimalRef, EntityOperationError, EventContext, StoredBatchRun
from src.herdbook.batch.schemas import (
    BatchRequest,
    FeedingPayload,
    HealthCheckPayload,
    LabTestPayload,
    OperationPayload,
    RelocationPayload,
    TreatmentPayload,
    VaccinationPayload,
    unique_in_order,
)
from src.herdbook.core.errors import HerdbookError, NotFoundError, ValidationError
from src.herdbook.core.monitoring import batch_entity_outcomes_total, batch_operations_total
from src.herdbook.core.tenant import TenantContext
from src.herdbook.tasks.schemas import TaskCreate

logger = structlog.get_logger(__name__)

MINUTES_PER_ANIMAL = 5


class BatchStore(Protocol):
    async def resolve_animals(self, tenant_id: uuid.UUID, ids: list[uuid.UUID]) -> list[AnimalRef]: ...

    async def feed_item_exists(self, tenant_id: uuid.UUID, feed_item_id: uuid.UUID) -> bool: ...

    async def record_event(self, ctx: EventContext, animal: AnimalRef, details: dict[str, Any]) -> uuid.UUID: ...

    async def relocate(
        self, ctx: EventContext, animal: AnimalRef, to_location: str, details: dict[str, Any]
    ) -> uuid.UUID: ...

    async def draw_feed(
        self,
        ctx: EventContext,
        animal: AnimalRef,
        feed_item_id: uuid.UUID,
        quantity: float,
        details: dict[str, Any],
    ) -> uuid.UUID: ...

    async def get_batch_run(self, tenant_id: uuid.UUID, key: str) -> StoredBatchRun | None: ...

    async def save_batch_run(
        self, tenant_id: uuid.UUID, key: str, operation: str, response: dict[str, Any]
    ) -> None: ...


class TaskStore(Protocol):
    async def create(self, tenant_id: str, assigned_by: str, data: TaskCreate) -> Any: ...


class BatchExecutor:
    """Runs batch operations against a BatchStore and a TaskStore.

    Args:
        store: Batch persistence (BatchRepository in production).
        tasks: Task persistence used for the follow-up task.
        max_batch_size: Largest accepted number of distinct ids.
    """

    def __init__(self, store: BatchStore, tasks: TaskStore, max_batch_size: int = 500) -> None:
        self._store = store
        self._tasks = tasks
        self._max_batch_size = max_batch_size

    async def execute(
        self,
        tenant: TenantContext,
        request: BatchRequest,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Execute one batch request for the caller's tenant.

        Raises:
            ValidationError: Bad payload, too many ids, or a reused idempotency key.
            NotFoundError: Some ids (or the feed item) do not resolve in the tenant.
        """
        payload = request.payload()
        entity_ids = unique_in_order(request.entity_ids)
        if len(entity_ids) > self._max_batch_size:
            raise ValidationError({"entityIds": f"at most {self._max_batch_size} distinct ids per batch"})

        tenant_id = uuid.UUID(tenant.tenant_id)
        log = logger.bind(tenant_id=tenant.tenant_id, operation=request.operation)

        if request.idempotency_key:
            stored = await self._store.get_batch_run(tenant_id, request.idempotency_key)
            if stored is not None:
                if stored.operation != request.operation:
                    raise ValidationError(
                        {"idempotencyKey": f"already used for a {stored.operation} batch"},
                    )
                log.info("batch.replayed", idempotency_key=request.idempotency_key)
                batch_operations_total.labels(operation=request.operation, outcome="replayed").inc()
                return {**stored.response, "replayed": True}

        animals = await self._resolve(tenant_id, entity_ids, payload)

        now = now or datetime.now(timezone.utc)
        ctx = EventContext(
            tenant_id=tenant_id,
            batch_id=uuid.uuid4(),
            event_type=request.operation,
            actor=tenant.user_id,
            occurred_at=now,
        )

        results: list[dict[str, Any]] = []
        for animal in animals:
            results.append(await self._run_entity(ctx, animal, payload, log))

        task_created, task_failed = None, False
        if request.create_task and request.assigned_to:
            task_created, task_failed = await self._create_task(tenant, request, animals, now, log)

        successful = sum(1 for r in results if r["success"])
        response = {
            "operation": request.operation,
            "batchId": str(ctx.batch_id),
            "entitiesProcessed": len(animals),
            "operationResults": results,
            "taskCreated": task_created,
            "taskCreationFailed": task_failed,
            "summary": {
                "successful": successful,
                "failed": len(results) - successful,
                "total": len(results),
            },
            "message": f"Successfully processed {successful} out of {len(results)} animals",
            "replayed": False,
        }

        if request.idempotency_key:
            await self._store.save_batch_run(tenant_id, request.idempotency_key, request.operation, response)

        outcome = "completed" if successful == len(results) else "partial"
        batch_operations_total.labels(operation=request.operation, outcome=outcome).inc()
        log.info(
            "batch.completed",
            batch_id=str(ctx.batch_id),
            successful=successful,
            failed=len(results) - successful,
            task_creation_failed=task_failed,
        )
        return response

    async def _resolve(
        self,
        tenant_id: uuid.UUID,
        entity_ids: list[uuid.UUID],
        payload: OperationPayload,
    ) -> list[AnimalRef]:
        found = {animal.id: animal for animal in await self._store.resolve_animals(tenant_id, entity_ids)}
        missing = [str(entity_id) for entity_id in entity_ids if entity_id not in found]
        if missing:
            raise NotFoundError("Some animals not found or do not belong to your tenant", missing_ids=missing)

        if isinstance(payload, FeedingPayload):
            if not await self._store.feed_item_exists(tenant_id, payload.feed_item_id):
                raise NotFoundError("Feed item not found", missing_ids=[str(payload.feed_item_id)])

        return [found[entity_id] for entity_id in entity_ids]

    async def _run_entity(
        self,
        ctx: EventContext,
        animal: AnimalRef,
        payload: OperationPayload,
        log: Any,
    ) -> dict[str, Any]:
        try:
            record_id = await self._apply(ctx, animal, payload)
        except EntityOperationError as exc:
            error = str(exc)
        except SQLAlchemyError as exc:
            error = f"Storage error: {type(exc).__name__}"
        else:
            batch_entity_outcomes_total.labels(operation=ctx.event_type, result="success").inc()
            return {
                "entityId": str(animal.id),
                "animalName": animal.name,
                "success": True,
                "recordId": str(record_id),
            }

        batch_entity_outcomes_total.labels(operation=ctx.event_type, result="failed").inc()
        log.warning("batch.entity_failed", batch_id=str(ctx.batch_id), entity_id=str(animal.id), error=error)
        return {
            "entityId": str(animal.id),
            "animalName": animal.name,
            "success": False,
            "error": error,
        }

    async def _apply(self, ctx: EventContext, animal: AnimalRef, payload: OperationPayload) -> uuid.UUID:
        details = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        match payload:
            case VaccinationPayload() | TreatmentPayload() | HealthCheckPayload() | LabTestPayload():
                return await self._store.record_event(ctx, animal, details)
            case RelocationPayload(to_location=to_location, from_location=from_location):
                details["fromLocation"] = from_location or animal.location
                return await self._store.relocate(ctx, animal, to_location, details)
            case FeedingPayload(feed_item_id=feed_item_id, quantity_per_animal=quantity):
                return await self._store.draw_feed(ctx, animal, feed_item_id, quantity, details)
            case _:
                raise EntityOperationError(f"Unsupported operation {ctx.event_type}")

    async def _create_task(
        self,
        tenant: TenantContext,
        request: BatchRequest,
        animals: list[AnimalRef],
        now: datetime,
        log: Any,
    ) -> tuple[dict[str, Any], bool]:
        labels = ", ".join(animal.label for animal in animals)
        data = TaskCreate(
            assigned_to=request.assigned_to,
            task_type=request.operation,
            priority=request.priority,
            title=f"Batch {request.operation} for {len(animals)} animals",
            description=f"Perform {request.operation} on animals: {labels}",
            animal_id=animals[0].id if len(animals) == 1 else None,
            due_date=request.scheduled_date or now,
            estimated_duration=request.estimated_duration or len(animals) * MINUTES_PER_ANIMAL,
        )
        try:
            task = await self._tasks.create(tenant.tenant_id, tenant.user_id, data)
        except (HerdbookError, SQLAlchemyError) as exc:
            log.error("batch.task_creation_failed", error=str(exc))
            return {"success": False, "error": str(exc) or type(exc).__name__}, True

        return {
            "success": True,
            "taskId": str(task.id),
            "assignedTo": task.assigned_to,
            "dueDate": task.due_date.isoformat(),
            "estimatedDuration": task.estimated_duration,
            "message": "Task created successfully",
        }, False
