"""Shared fixtures for API and unit tests.

Provides:
- A tenant context for the tenant "alpha" and a second tenant "beta"
- make_app: the v1 routers with exception handlers and get_tenant overridden
- An async HTTP client factory over ASGITransport
- In-memory batch and task stores mirroring the repository contracts

Database-backed tests live in test_tenant_isolation.py and are skipped
unless TEST_DATABASE_URL is set.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.herdbook.api.deps import get_tenant
from src.herdbook.api.v1.router import router as v1_router
from src.herdbook.batch.repository import AnimalRef, EntityOperationError, EventContext, StoredBatchRun
from src.herdbook.core.errors import NotFoundError, register_exception_handlers
from src.herdbook.core.tenant import TenantContext
from src.herdbook.tasks.repository import apply_update
from src.herdbook.tasks.schemas import TaskCreate, TaskUpdate

ALPHA_TENANT_ID = str(uuid.uuid4())
BETA_TENANT_ID = str(uuid.uuid4())


@pytest.fixture
def alpha_tenant() -> TenantContext:
    return TenantContext(tenant_id=ALPHA_TENANT_ID, tenant_slug="alpha", user_id="user_alpha", role="farm_owner")


@pytest.fixture
def beta_tenant() -> TenantContext:
    return TenantContext(tenant_id=BETA_TENANT_ID, tenant_slug="beta", user_id="user_beta", role="farm_owner")


def _build_app(tenant: TenantContext) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(v1_router, prefix="/api/v1")
    app.dependency_overrides[get_tenant] = lambda: tenant
    return app


@pytest.fixture
def make_app() -> Callable[[TenantContext], FastAPI]:
    """Minimal app with the v1 routers, error rendering and a fixed tenant."""
    return _build_app


@pytest.fixture
def client_for() -> Callable[[FastAPI], AsyncClient]:
    """Build an AsyncClient bound to an app (use as an async context manager)."""

    def _client(app: FastAPI) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _client


# ── In-Memory Test Doubles ──────────────────────────────────────────────────


class InMemoryBatchStore:
    """BatchRepository double: tenant-scoped lookups, all-or-nothing entity writes."""

    def __init__(self) -> None:
        self.animals: dict[uuid.UUID, tuple[uuid.UUID, AnimalRef]] = {}
        self.feed: dict[uuid.UUID, tuple[uuid.UUID, float]] = {}
        self.events: list[dict[str, Any]] = []
        self.locations: dict[uuid.UUID, str] = {}
        self.runs: dict[tuple[uuid.UUID, str], StoredBatchRun] = {}
        self.resolve_calls = 0

    def add_animal(self, tenant_id: str, name: str | None, tag: str, location: str | None = "Barn A") -> AnimalRef:
        animal = AnimalRef(id=uuid.uuid4(), name=name, tag=tag, location=location)
        self.animals[animal.id] = (uuid.UUID(tenant_id), animal)
        return animal

    def add_feed(self, tenant_id: str, quantity: float) -> uuid.UUID:
        feed_id = uuid.uuid4()
        self.feed[feed_id] = (uuid.UUID(tenant_id), quantity)
        return feed_id

    async def resolve_animals(self, tenant_id: uuid.UUID, ids: list[uuid.UUID]) -> list[AnimalRef]:
        self.resolve_calls += 1
        return [
            animal
            for animal_id, (owner, animal) in self.animals.items()
            if owner == tenant_id and animal_id in ids
        ]

    async def feed_item_exists(self, tenant_id: uuid.UUID, feed_item_id: uuid.UUID) -> bool:
        entry = self.feed.get(feed_item_id)
        return entry is not None and entry[0] == tenant_id

    async def record_event(self, ctx: EventContext, animal: AnimalRef, details: dict[str, Any]) -> uuid.UUID:
        event_id = uuid.uuid4()
        self.events.append({"id": event_id, "animal_id": animal.id, "type": ctx.event_type, "details": details})
        return event_id

    async def relocate(
        self, ctx: EventContext, animal: AnimalRef, to_location: str, details: dict[str, Any]
    ) -> uuid.UUID:
        self.locations[animal.id] = to_location
        return await self.record_event(ctx, animal, details)

    async def draw_feed(
        self,
        ctx: EventContext,
        animal: AnimalRef,
        feed_item_id: uuid.UUID,
        quantity: float,
        details: dict[str, Any],
    ) -> uuid.UUID:
        owner, stock = self.feed[feed_item_id]
        if stock < quantity:
            raise EntityOperationError("Insufficient stock")
        self.feed[feed_item_id] = (owner, stock - quantity)
        return await self.record_event(ctx, animal, details)

    async def get_batch_run(self, tenant_id: uuid.UUID, key: str) -> StoredBatchRun | None:
        return self.runs.get((tenant_id, key))

    async def save_batch_run(self, tenant_id: uuid.UUID, key: str, operation: str, response: dict[str, Any]) -> None:
        self.runs.setdefault((tenant_id, key), StoredBatchRun(operation=operation, response=response))


class InMemoryTaskStore:
    """TaskRepository double keyed by (tenant, task id)."""

    def __init__(self) -> None:
        self.fail = False
        self.created: list[TaskCreate] = []
        self.tasks: dict[tuple[str, uuid.UUID], SimpleNamespace] = {}

    async def create(self, tenant_id: str, assigned_by: str, data: TaskCreate) -> Any:
        if self.fail:
            raise NotFoundError("Animal not found")
        self.created.append(data)
        now = datetime.now(timezone.utc)
        task = SimpleNamespace(
            id=uuid.uuid4(),
            assigned_by=assigned_by,
            status="pending",
            actual_duration=None,
            completion_notes=None,
            created_at=now,
            updated_at=None,
            completed_at=None,
            **data.model_dump(),
        )
        self.tasks[(tenant_id, task.id)] = task
        return task

    async def update(self, tenant_id: str, task_id: uuid.UUID, update: TaskUpdate) -> Any:
        task = self.tasks.get((tenant_id, task_id))
        if task is None:
            raise NotFoundError("Task not found", missing_ids=[str(task_id)])
        now = datetime.now(timezone.utc)
        apply_update(task, update, now)
        task.updated_at = now
        return task


@pytest.fixture
def store() -> InMemoryBatchStore:
    return InMemoryBatchStore()


@pytest.fixture
def tasks() -> InMemoryTaskStore:
    return InMemoryTaskStore()
