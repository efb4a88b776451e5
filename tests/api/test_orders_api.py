import pytest

from conftest import encode, intent_event, sign_payload


@pytest.mark.asyncio
async def test_create_and_get_order(client):
    resp = await client.post(
        "/orders", json={"orderId": "ORD-1", "amount": "45.50", "email": "ann@example.com", "metadata": {"sku": "A1"}}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == "ORD-1"
    assert body["amount"] == "45.50"
    assert body["currency"] == "usd"
    assert body["metadata"] == {"sku": "A1", "order_id": "ORD-1"}

    # Re-creating an existing id returns the stored order
    again = await client.post("/orders", json={"orderId": "ORD-1", "amount": "99.00"})
    assert again.json()["amount"] == "45.50"

    missing = await client.get("/orders/ORD-404")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_create_order_validation(client):
    resp = await client.post("/orders", json={"orderId": "ORD-1"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Amount is required"

    resp = await client.post("/orders", json={"orderId": "ORD-1", "amount": "0.004"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Amount must be greater than 0"


@pytest.mark.asyncio
async def test_cancel_pending_and_paid_orders(client):
    await client.post("/orders", json={"orderId": "ORD-1", "amount": "10.00"})
    cancelled = await client.post("/orders/ORD-1/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["orderStatus"] == "cancelled"

    await client.post("/orders", json={"orderId": "ORD-2", "amount": "10.00"})
    body = encode(intent_event("evt_1", "pi_1", order_id="ORD-2", amount=1000))
    await client.post("/webhooks/payments", content=body, headers={"stripe-signature": sign_payload(body)})

    conflict = await client.post("/orders/ORD-2/cancel")
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "Paid orders cannot be cancelled"
