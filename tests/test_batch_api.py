"""API tests for POST /api/v1/animals/batch-operations.

A real BatchExecutor over the in-memory stores from conftest is placed on
app.state.
"""

from __future__ import annotations

import uuid

import pytest

from src.herdbook.batch.executor import BatchExecutor

URL = "/api/v1/animals/batch-operations"


@pytest.fixture
def app(make_app, alpha_tenant, store, tasks):
    app = make_app(alpha_tenant)
    app.state.batch_executor = BatchExecutor(store, tasks)
    return app


@pytest.mark.asyncio
async def test_partial_success_is_200(app, store, alpha_tenant, client_for):
    herd = [store.add_animal(alpha_tenant.tenant_id, f"Cow {i}", f"T{i}") for i in range(2)]
    feed_id = store.add_feed(alpha_tenant.tenant_id, quantity=15.0)

    async with client_for(app) as client:
        resp = await client.post(
            URL,
            json={
                "operation": "feeding",
                "entityIds": [str(a.id) for a in herd],
                "operationData": {"feedItemId": str(feed_id), "quantityPerAnimal": 10},
                "assignedTo": "user_worker",
            },
        )

    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"success", "data"}
    assert body["success"] is True
    body = body["data"]
    assert body["summary"] == {"successful": 1, "failed": 1, "total": 2}
    assert body["operationResults"][1]["error"] == "Insufficient stock"
    assert body["taskCreated"]["success"] is True


@pytest.mark.asyncio
async def test_unknown_operation_is_400(app, client_for):
    async with client_for(app) as client:
        resp = await client.post(URL, json={"operation": "shearing", "entityIds": [str(uuid.uuid4())]})

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert any(d["field"] == "operation" for d in body["details"])


@pytest.mark.asyncio
async def test_empty_entity_ids_is_400(app, client_for):
    async with client_for(app) as client:
        resp = await client.post(URL, json={"operation": "vaccination", "entityIds": []})

    assert resp.status_code == 400
    assert any(d["field"] == "entityIds" for d in resp.json()["details"])


@pytest.mark.asyncio
async def test_malformed_entity_id_is_400_naming_position(app, store, alpha_tenant, client_for):
    animal = store.add_animal(alpha_tenant.tenant_id, "Bella", "A1")

    async with client_for(app) as client:
        resp = await client.post(
            URL,
            json={
                "operation": "vaccination",
                "entityIds": [str(animal.id), "cow-42"],
                "operationData": {"vaccineName": "FMD"},
            },
        )

    assert resp.status_code == 400
    assert [d["field"] for d in resp.json()["details"]] == ["entityIds.1"]
    assert store.resolve_calls == 0
    assert store.events == []


@pytest.mark.asyncio
async def test_bad_operation_data_is_400(app, store, alpha_tenant, client_for):
    animal = store.add_animal(alpha_tenant.tenant_id, "Bella", "A1")

    async with client_for(app) as client:
        resp = await client.post(
            URL,
            json={"operation": "lab_test", "entityIds": [str(animal.id)], "operationData": {"testType": "blood"}},
        )

    assert resp.status_code == 400
    assert resp.json()["details"] == [{"field": "operationData.laboratory", "message": "Field required"}]
    assert store.events == []


@pytest.mark.asyncio
async def test_foreign_ids_are_404_with_missing_ids(app, store, beta_tenant, client_for):
    theirs = store.add_animal(beta_tenant.tenant_id, "Daisy", "B1")

    async with client_for(app) as client:
        resp = await client.post(
            URL,
            json={
                "operation": "vaccination",
                "entityIds": [str(theirs.id)],
                "operationData": {"vaccineName": "FMD"},
            },
        )

    assert resp.status_code == 404
    body = resp.json()
    assert body["error"] == "Some animals not found or do not belong to your tenant"
    assert body["details"] == {"missingIds": [str(theirs.id)]}
    assert store.events == []


@pytest.mark.asyncio
async def test_executor_not_initialized_is_503(make_app, alpha_tenant, client_for):
    async with client_for(make_app(alpha_tenant)) as client:
        resp = await client.post(
            URL,
            json={"operation": "vaccination", "entityIds": [str(uuid.uuid4())], "operationData": {"vaccineName": "X"}},
        )

    assert resp.status_code == 503
