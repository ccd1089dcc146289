"""
HTTP tests against the ASGI app with the in-memory repositories injected.
"""

import pytest
from httpx import AsyncClient

from rewards_api.services.budget_workflow import BudgetStatus

COMPANY_ID = "company-acme"


async def _create_product(client: AsyncClient, name: str, category: str = "merchandise") -> dict:
    response = await client.post(
        "/api/v1/base-products",
        json={"name": name, "category": category, "price": 10, "points_cost": 100, "stock_quantity": 5},
    )
    assert response.status_code == 201
    return response.json()


async def _create_budget(client: AsyncClient, product_ids: list[str]) -> dict:
    response = await client.post(
        "/api/v1/budgets",
        json={
            "company_id": COMPANY_ID,
            "title": "Q4 awards",
            "created_by": "admin-1",
            "items": [
                {"base_product_id": pid, "qty": 2, "unit_price": 10, "unit_points": 100}
                for pid in product_ids
            ],
        },
    )
    assert response.status_code == 201
    return response.json()


async def _release(client: AsyncClient, budget_id: str):
    for step in ("submitted", "reviewed", "approved", "released"):
        response = await client.patch(
            f"/api/v1/budgets/{budget_id}", json={"status": step, "updated_by": "admin-1"}
        )
        assert response.status_code == 200, response.text


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_base_products_crud(client):
    mug = await _create_product(client, "Travel Mug")
    await _create_product(client, "Headphones", category="electronics")

    listed = (await client.get("/api/v1/base-products", params={"search": "mug"})).json()
    assert [p["id"] for p in listed["data"]] == [mug["id"]]
    assert listed["pagination"]["total"] == 1

    by_category = (await client.get("/api/v1/base-products", params={"category": "electronics"})).json()
    assert [p["name"] for p in by_category["data"]] == ["Headphones"]

    fetched = await client.get(f"/api/v1/base-products/{mug['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["points_cost"] == 100


@pytest.mark.asyncio
async def test_missing_base_product_uses_error_envelope(client):
    response = await client.get("/api/v1/base-products/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_create_budget_computes_totals(client):
    p1 = await _create_product(client, "Mug")
    p2 = await _create_product(client, "Hoodie")

    budget = await _create_budget(client, [p1["id"], p2["id"]])

    assert budget["status"] == "draft"
    assert budget["total_price"] == 40
    assert budget["total_points"] == 400
    assert budget["item_count"] == 2
    assert len(budget["items"]) == 2


@pytest.mark.asyncio
async def test_create_budget_rejects_zero_qty(client):
    p1 = await _create_product(client, "Mug")
    response = await client.post(
        "/api/v1/budgets",
        json={
            "company_id": COMPANY_ID,
            "title": "Bad",
            "created_by": "admin-1",
            "items": [{"base_product_id": p1["id"], "qty": 0}],
        },
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_illegal_transition_returns_400(client):
    p1 = await _create_product(client, "Mug")
    budget = await _create_budget(client, [p1["id"]])

    response = await client.patch(
        f"/api/v1/budgets/{budget['id']}", json={"status": "approved", "updated_by": "admin-1"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TRANSITION"
    stored = (await client.get(f"/api/v1/budgets/{budget['id']}")).json()
    assert stored["status"] == "draft"


@pytest.mark.asyncio
async def test_patch_requires_updated_by(client):
    p1 = await _create_product(client, "Mug")
    budget = await _create_budget(client, [p1["id"]])

    response = await client.patch(f"/api/v1/budgets/{budget['id']}", json={"status": "submitted"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_item_endpoints(client):
    p1 = await _create_product(client, "Mug")
    p2 = await _create_product(client, "Hoodie")
    budget = await _create_budget(client, [p1["id"]])

    added = await client.post(
        f"/api/v1/budgets/{budget['id']}/items",
        json={"base_product_id": p2["id"], "qty": 1, "unit_price": 5, "unit_points": 50},
    )
    assert added.status_code == 201
    item_id = added.json()["id"]

    patched = await client.patch(f"/api/v1/budgets/{budget['id']}/items/{item_id}", json={"qty": 3})
    assert patched.json()["qty"] == 3
    assert (await client.get(f"/api/v1/budgets/{budget['id']}")).json()["total_price"] == 35

    deleted = await client.delete(f"/api/v1/budgets/{budget['id']}/items/{item_id}")
    assert deleted.status_code == 204
    assert (await client.get(f"/api/v1/budgets/{budget['id']}")).json()["item_count"] == 1


@pytest.mark.asyncio
async def test_items_locked_after_submit(client):
    p1 = await _create_product(client, "Mug")
    budget = await _create_budget(client, [p1["id"]])
    await client.patch(f"/api/v1/budgets/{budget['id']}", json={"status": "submitted", "updated_by": "a"})

    response = await client.post(
        f"/api/v1/budgets/{budget['id']}/items", json={"base_product_id": p1["id"], "qty": 1}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BUDGET_NOT_EDITABLE"


@pytest.mark.asyncio
async def test_list_budgets_by_status(client):
    p1 = await _create_product(client, "Mug")
    first = await _create_budget(client, [p1["id"]])
    await _create_budget(client, [p1["id"]])
    await client.patch(f"/api/v1/budgets/{first['id']}", json={"status": "submitted", "updated_by": "a"})

    response = await client.get("/api/v1/budgets", params={"status": BudgetStatus.SUBMITTED.value})

    assert [b["id"] for b in response.json()["data"]] == [first["id"]]


@pytest.mark.asyncio
async def test_replicate_budget_flow(client):
    p1 = await _create_product(client, "Mug")
    p2 = await _create_product(client, "Hoodie")
    budget = await _create_budget(client, [p1["id"], p2["id"]])
    await _release(client, budget["id"])

    response = await client.post("/api/v1/replication", json={"budget_id": budget["id"]})

    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == {"total": 2, "created": 2, "updated": 0, "skipped": 0, "failed": 0}
    assert data["budget_status"] == "replicated"
    assert data["log_id"]

    catalog = await client.get("/api/v1/replication/company-products", params={"company_id": COMPANY_ID})
    assert sorted(p["name"] for p in catalog.json()) == ["Hoodie", "Mug"]

    logs = (await client.get("/api/v1/replication/logs", params={"budget_id": budget["id"]})).json()
    assert logs["pagination"]["total"] == 1
    assert logs["data"][0]["status"] == "success"
    assert logs["data"][0]["metadata"]["source"] == "api"


@pytest.mark.asyncio
async def test_replicate_unreleased_budget(client):
    p1 = await _create_product(client, "Mug")
    budget = await _create_budget(client, [p1["id"]])

    response = await client.post("/api/v1/replication", json={"budget_id": budget["id"]})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BUDGET_NOT_RELEASED"


@pytest.mark.asyncio
async def test_replicate_dry_run_with_client_snapshot(client):
    p1 = await _create_product(client, "Mug")
    budget = await _create_budget(client, [p1["id"]])
    await _release(client, budget["id"])

    response = await client.post(
        "/api/v1/replication",
        json={
            "budget_id": budget["id"],
            "dry_run": True,
            "budget_data": {"title": "Edited offline", "status": "draft"},
            "budget_items": [{"id": budget["items"][0]["id"], "qty": 9}],
        },
    )

    assert response.status_code == 200
    assert response.json()["dry_run"] is True
    stored = (await client.get(f"/api/v1/budgets/{budget['id']}")).json()
    assert stored["status"] == "released"
    assert stored["title"] == "Q4 awards"


@pytest.mark.asyncio
async def test_replicate_single_product(client):
    p1 = await _create_product(client, "Mug")

    response = await client.post(
        "/api/v1/replication",
        json={"base_product_id": p1["id"], "company_id": COMPANY_ID, "overrides": {"price": 7}},
    )

    assert response.status_code == 200
    assert response.json()["result"]["status"] == "created"
    logs = (await client.get("/api/v1/replication/logs", params={"company_id": COMPANY_ID})).json()
    assert logs["data"][0]["action"] == "replicate_single"


@pytest.mark.asyncio
async def test_replicate_single_unknown_product(client):
    response = await client.post(
        "/api/v1/replication", json={"base_product_id": "ghost", "company_id": COMPANY_ID}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_replication_request_needs_a_mode(client):
    response = await client.post("/api/v1/replication", json={"company_id": COMPANY_ID})
    assert response.status_code == 422
