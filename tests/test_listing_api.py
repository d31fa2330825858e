"""API tests for the enhanced listing endpoints and reading ingestion.

StubComposer keeps the real parsing and shaping of TenantQueryComposer and
replaces only the database fetch, recording which tenant each fetch was
scoped to.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from src.herdbook.core.errors import NotFoundError
from src.herdbook.queries.analytics import build_feed_analytics
from src.herdbook.queries.composer import FetchResult, ListingSpec, TenantQueryComposer
from src.herdbook.queries.params import ListParams


# ── Test doubles ────────────────────────────────────────────────────────────


class StubComposer(TenantQueryComposer):
    def __init__(self, rows: dict[str, list[Any]] | None = None, total_count: int | None = None) -> None:
        super().__init__(session_factory=None)
        self.rows = rows or {}
        self.total_count = total_count
        self.calls: list[tuple[str, uuid.UUID, ListParams]] = []

    async def _fetch(self, spec: ListingSpec, tenant_id: uuid.UUID, params: ListParams, now: datetime) -> FetchResult:
        self.calls.append((spec.entity, tenant_id, params))
        rows = self.rows.get(spec.entity, [])
        total = self.total_count if self.total_count is not None else len(rows)
        return FetchResult(rows=rows, total_count=total, facets={name: [] for name in spec.facets})


class StubFeedAnalytics:
    def __init__(self) -> None:
        self.tenants: list[str] = []

    async def summarize(self, tenant_id: str, today: date) -> dict[str, Any]:
        self.tenants.append(tenant_id)
        return build_feed_analytics([("concentrate", 300.0, 120.0, 1, 1, 0)])


class StubIngestor:
    def __init__(self, known_devices: set[uuid.UUID]) -> None:
        self.known_devices = known_devices

    async def ingest(self, tenant_id: str, data: Any, now: datetime | None = None) -> Any:
        if data.device_id not in self.known_devices:
            raise NotFoundError("Device not found", missing_ids=[str(data.device_id)])
        return SimpleNamespace(
            id=uuid.uuid4(),
            device_id=data.device_id,
            animal_id=data.animal_id,
            data_type=data.data_type,
            value=data.value,
            unit=data.unit,
            recorded_at=data.recorded_at,
            quality=data.quality,
            alert_triggered=data.value < 36.0,
            created_at=now,
        )


def _feed_item(name: str, quantity: float, minimum: float) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid.uuid4(),
        name=name,
        category="concentrate",
        supplier="Mill Co",
        batch_number="B-1",
        storage_location="Silo 1",
        quantity=quantity,
        unit="kg",
        minimum_stock=minimum,
        unit_cost=2.5,
        average_daily_consumption=None,
        purchase_date=None,
        expiry_date=None,
        is_active=True,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=None,
    )


def _task(status: str, due_in_days: int) -> SimpleNamespace:
    now = datetime.now(timezone.utc)
    return SimpleNamespace(
        id=uuid.uuid4(),
        assigned_to="user_worker",
        assigned_by="user_alpha",
        task_type="vaccination",
        priority="high",
        title="Vaccinate",
        description=None,
        animal_id=None,
        due_date=now + timedelta(days=due_in_days),
        estimated_duration=30,
        actual_duration=None,
        status=status,
        completion_notes=None,
        created_at=now,
        updated_at=None,
        completed_at=None,
    )


# ── Listings ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_listing_is_scoped_to_caller_tenant(make_app, alpha_tenant, client_for):
    composer = StubComposer()
    app = make_app(alpha_tenant)
    app.state.query_composer = composer

    async with client_for(app) as client:
        resp = await client.get("/api/v1/animals", params={"species": "cattle", "page": "2", "limit": "5"})

    assert resp.status_code == 200
    entity, tenant_id, params = composer.calls[0]
    assert entity == "animals"
    assert tenant_id == uuid.UUID(alpha_tenant.tenant_id)
    assert params.categorical == {"species": ["cattle"]}
    body = resp.json()
    assert body["success"] is True
    body = body["data"]
    assert body["pagination"]["currentPage"] == 2
    assert body["filters"]["applied"] == {"species": ["cattle"]}
    assert set(body["filters"]["available"]) == {"species", "breeds", "statuses", "genders"}


@pytest.mark.asyncio
async def test_invalid_parameters_are_400_before_fetch(make_app, alpha_tenant, client_for):
    composer = StubComposer()
    app = make_app(alpha_tenant)
    app.state.query_composer = composer

    async with client_for(app) as client:
        bad_sort = await client.get("/api/v1/iot/devices", params={"sortBy": "secret"})
        bad_limit = await client.get("/api/v1/tasks", params={"limit": "1000"})
        bad_date = await client.get("/api/v1/iot/readings", params={"startDate": "soon"})

    for resp, field in ((bad_sort, "sortBy"), (bad_limit, "limit"), (bad_date, "startDate")):
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["details"][0]["field"] == field
    assert composer.calls == []


@pytest.mark.asyncio
async def test_feed_listing_includes_analytics(make_app, alpha_tenant, client_for):
    composer = StubComposer(rows={"feed": [_feed_item("Dairy mix", 120.0, 100.0)]})
    analytics = StubFeedAnalytics()
    app = make_app(alpha_tenant)
    app.state.query_composer = composer
    app.state.feed_analytics = analytics

    async with client_for(app) as client:
        resp = await client.get("/api/v1/feed")

    assert resp.status_code == 200
    body = resp.json()["data"]
    assert body["items"][0]["stockStatus"] == "low"
    assert body["items"][0]["totalValue"] == 300.0
    assert body["summary"]["lowStockItems"] == 1
    assert body["analytics"]["categoryBreakdown"][0]["valuePercentage"] == 100.0
    assert analytics.tenants == [alpha_tenant.tenant_id]


@pytest.mark.asyncio
async def test_task_overdue_post_filter(make_app, alpha_tenant, client_for):
    rows = [_task("pending", -2), _task("completed", -2), _task("in_progress", 3)]
    composer = StubComposer(rows={"tasks": rows}, total_count=12)
    app = make_app(alpha_tenant)
    app.state.query_composer = composer

    async with client_for(app) as client:
        resp = await client.get("/api/v1/tasks", params={"isOverdue": "true", "limit": "3"})

    body = resp.json()["data"]
    assert [item["status"] for item in body["items"]] == ["pending"]
    assert body["pagination"]["totalCount"] == 12
    assert body["pagination"]["postFilterApplied"] is True
    assert body["pagination"]["pageItemCount"] == 1
    assert body["summary"]["overdueTasks"] == 1


@pytest.mark.asyncio
async def test_composer_not_initialized_is_503(make_app, alpha_tenant, client_for):
    async with client_for(make_app(alpha_tenant)) as client:
        resp = await client.get("/api/v1/animals")

    assert resp.status_code == 503
    assert resp.json()["success"] is False


# ── Reading ingestion ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ingest_reading_returns_derived_fields(make_app, alpha_tenant, client_for):
    device_id = uuid.uuid4()
    app = make_app(alpha_tenant)
    app.state.reading_ingestor = StubIngestor({device_id})

    async with client_for(app) as client:
        resp = await client.post(
            "/api/v1/iot/readings",
            json={
                "deviceId": str(device_id),
                "dataType": "temperature",
                "value": 35.0,
                "unit": "C",
                "recordedAt": datetime.now(timezone.utc).isoformat(),
            },
        )

    assert resp.status_code == 201
    reading = resp.json()["data"]
    assert reading["alertLevel"] == "critical"
    assert reading["alertTriggered"] is True
    assert reading["quality"] == "good"


@pytest.mark.asyncio
async def test_ingest_reading_for_unknown_device_is_404(make_app, alpha_tenant, client_for):
    app = make_app(alpha_tenant)
    app.state.reading_ingestor = StubIngestor(set())

    async with client_for(app) as client:
        resp = await client.post(
            "/api/v1/iot/readings",
            json={
                "deviceId": str(uuid.uuid4()),
                "dataType": "temperature",
                "value": 38.6,
                "recordedAt": "2026-06-15T08:00:00Z",
            },
        )

    assert resp.status_code == 404
    assert "missingIds" in resp.json()["details"]


@pytest.mark.asyncio
async def test_ingest_reading_rejects_unknown_data_type(make_app, alpha_tenant, client_for):
    app = make_app(alpha_tenant)
    app.state.reading_ingestor = StubIngestor(set())

    async with client_for(app) as client:
        resp = await client.post(
            "/api/v1/iot/readings",
            json={"deviceId": str(uuid.uuid4()), "dataType": "mood", "value": 1, "recordedAt": "2026-06-15T08:00:00Z"},
        )

    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "dataType"


# ── Feed analytics ──────────────────────────────────────────────────────────


def test_build_feed_analytics():
    analytics = build_feed_analytics(
        [
            ("concentrate", 750.0, 300.0, 3, 1, 0),
            ("forage", 250.0, 1000.0, 2, 0, 2),
        ]
    )

    assert analytics["totalValue"] == 1000.0
    assert analytics["totalItems"] == 5
    assert analytics["totalStock"] == 1300.0
    assert analytics["lowStockItems"] == 1
    assert analytics["expiringItems"] == 2
    assert [c["valuePercentage"] for c in analytics["categoryBreakdown"]] == [75.0, 25.0]


def test_build_feed_analytics_empty():
    analytics = build_feed_analytics([])
    assert analytics["totalValue"] == 0
    assert analytics["categoryBreakdown"] == []
