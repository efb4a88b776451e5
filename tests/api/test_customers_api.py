import pytest


@pytest.mark.asyncio
async def test_upsert_requires_email_and_name(client, gateway):
    resp = await client.post("/customers", json={"email": "ann@example.com"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Email and name are required"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_upsert_creates_then_updates(client, gateway, uow_factory):
    first = await client.post(
        "/customers", json={"email": "Ann@Example.com", "name": "Ann", "paymentMethodId": "pm_1"}
    )
    assert first.status_code == 200
    customer_id = first.json()["customerId"]
    assert first.json()["success"] is True
    assert gateway.names() == ["create_customer", "attach_payment_method", "set_default_payment_method"]

    second = await client.post("/customers", json={"email": "ann@example.com", "name": "Ann B"})
    assert second.json()["customerId"] == customer_id
    assert gateway.calls[-1] == ("update_customer", (customer_id,), {"email": "ann@example.com", "name": "Ann B"})

    async with uow_factory(readonly=True) as uow:
        customer = await uow.customer_repository.get_by_email("ann@example.com")
    assert customer.billing_id == customer_id
    assert customer.name == "Ann B"
    assert customer.payment_method_ids == ["pm_1"]


@pytest.mark.asyncio
async def test_save_and_list_payment_methods(client, gateway):
    created = await client.post("/customers", json={"email": "ann@example.com", "name": "Ann"})
    customer_id = created.json()["customerId"]

    saved = await client.post(
        "/customers/payment-methods",
        json={"customerId": customer_id, "paymentMethodId": "pm_2", "makeDefault": False},
    )
    assert saved.status_code == 200
    assert "set_default_payment_method" not in gateway.names()

    unknown = await client.post(
        "/customers/payment-methods", json={"customerId": "cus_missing", "paymentMethodId": "pm_2"}
    )
    assert unknown.status_code == 404

    listed = await client.get(f"/customers/{customer_id}/payment-methods")
    assert listed.status_code == 200
    assert listed.json()["paymentMethods"][0] == {
        "id": "pm_card_visa",
        "brand": "visa",
        "last4": "4242",
        "expMonth": 12,
        "expYear": 2030,
    }
