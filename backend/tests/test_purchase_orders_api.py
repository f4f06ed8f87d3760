"""
API Integration Tests — Purchase order workflow.
"""

import pytest
from httpx import AsyncClient


async def _draft(client: AsyncClient, seeded_db) -> str:
    resp = await client.post(
        "/api/v1/purchase-orders/",
        json={"supplier_id": str(seeded_db["supplier_id"]), "total_amount": 60.0, "notes": "Weekly dairy"},
    )
    assert resp.status_code == 201
    return resp.json()["po_id"]


async def _add(client: AsyncClient, po_id: str, product_id, quantity: int, unit_price: float = 1.5):
    return await client.post(
        f"/api/v1/purchase-orders/{po_id}/items",
        json={"product_id": str(product_id), "quantity": quantity, "unit_price": unit_price},
    )


async def _advance(client: AsyncClient, po_id: str, *statuses: str):
    for status in statuses:
        resp = await client.patch(f"/api/v1/purchase-orders/{po_id}", json={"status": status})
        assert resp.status_code == 200, resp.text


@pytest.mark.asyncio
class TestPurchaseOrdersAPI:
    async def test_create_draft(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        resp = await client.get(f"/api/v1/purchase-orders/{po_id}")
        data = resp.json()
        assert data["status"] == "draft"
        assert data["order_number"].startswith("PO-")
        assert data["created_by"] == "admin-1"

    async def test_list_filters_by_status(self, client: AsyncClient, seeded_db):
        first = await _draft(client, seeded_db)
        await _draft(client, seeded_db)
        await _advance(client, first, "pending")

        resp = await client.get("/api/v1/purchase-orders/?status=pending")
        assert [po["po_id"] for po in resp.json()] == [first]
        assert len((await client.get("/api/v1/purchase-orders/")).json()) == 2

    async def test_items(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        resp = await _add(client, po_id, seeded_db["product_id"], 40, 1.5)
        assert resp.status_code == 201
        assert resp.json()["total_price"] == 60.0

        items = (await client.get(f"/api/v1/purchase-orders/{po_id}/items")).json()
        assert len(items) == 1
        assert items[0]["received_quantity"] == 0

    async def test_zero_quantity_item_rejected(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        resp = await _add(client, po_id, seeded_db["product_id"], 0)
        assert resp.status_code == 422

    async def test_illegal_transition(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        resp = await client.patch(f"/api/v1/purchase-orders/{po_id}", json={"status": "confirmed"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_operation"

    async def test_full_receive_flow(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        await _add(client, po_id, seeded_db["product_id"], 40)
        await _advance(client, po_id, "pending", "confirmed")

        resp = await client.post(f"/api/v1/purchase-orders/{po_id}/receive", json={})
        assert resp.status_code == 200
        assert resp.json()["status"] == "received"

        product = (await client.get(f"/api/v1/products/{seeded_db['product_id']}")).json()
        assert product["stock"] == 40
        ledger = (await client.get(f"/api/v1/transactions/?product_id={seeded_db['product_id']}")).json()
        assert len(ledger) == 1
        assert ledger[0]["purchase_order_id"] == po_id
        assert ledger[0]["movement_type"] == "entry"

        po = (await client.get(f"/api/v1/purchase-orders/{po_id}")).json()
        assert po["status"] == "received"
        assert po["received_date"] is not None
        items = (await client.get(f"/api/v1/purchase-orders/{po_id}/items")).json()
        assert items[0]["received_quantity"] == 40

    async def test_partial_receive(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        item_id = (await _add(client, po_id, seeded_db["product_id"], 40)).json()["item_id"]
        await _advance(client, po_id, "pending", "confirmed")

        resp = await client.post(
            f"/api/v1/purchase-orders/{po_id}/receive",
            json={"items": [{"item_id": item_id, "received_quantity": 30}], "notes": "Short shipped"},
        )
        assert resp.json()["has_discrepancy"] is True
        assert resp.json()["items"][0]["discrepancy_type"] == "shortage"

    async def test_receive_draft_is_rejected(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        await _add(client, po_id, seeded_db["product_id"], 40)
        resp = await client.post(f"/api/v1/purchase-orders/{po_id}/receive", json={})
        assert resp.status_code == 400

    async def test_cancel(self, client: AsyncClient, seeded_db):
        po_id = await _draft(client, seeded_db)
        await _advance(client, po_id, "pending", "cancelled")
        resp = await client.patch(f"/api/v1/purchase-orders/{po_id}", json={"status": "pending"})
        assert resp.status_code == 400

    async def test_get_nonexistent(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/purchase-orders/00000000-0000-0000-0000-0000000000ff")
        assert resp.status_code == 404

    async def test_writes_require_admin(self, user_client: AsyncClient, seeded_db):
        resp = await user_client.post(
            "/api/v1/purchase-orders/", json={"supplier_id": str(seeded_db["supplier_id"])}
        )
        assert resp.status_code == 403
        resp = await user_client.get("/api/v1/purchase-orders/")
        assert resp.status_code == 200
