import pytest

from conftest import encode, sign_payload, subscription_event


@pytest.mark.asyncio
async def test_create_subscription(client, uow_factory):
    await client.post("/customers", json={"email": "ann@example.com", "name": "Ann"})
    resp = await client.post("/subscriptions", json={"customerId": "cus_1", "priceId": "price_basic"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["subscriptionId"] == "sub_2"
    assert body["status"] == "incomplete"
    assert body["clientSecret"] == "pi_sub_secret"

    async with uow_factory(readonly=True) as uow:
        customer = await uow.customer_repository.get_by_billing_id("cus_1")
        sub = await uow.subscription_repository.get_by_id("sub_2")
    assert customer.subscription_ids == ["sub_2"]
    assert sub.price_id == "price_basic"


@pytest.mark.asyncio
async def test_create_subscription_requires_ids(client):
    resp = await client.post("/subscriptions", json={"customerId": "cus_1"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Customer ID and price ID are required"


@pytest.mark.asyncio
async def test_cancel_subscription_waits_for_webhook(client, uow_factory):
    await client.post("/customers", json={"email": "ann@example.com", "name": "Ann"})
    created = (await client.post("/subscriptions", json={"customerId": "cus_1", "priceId": "price_basic"})).json()
    sub_id = created["subscriptionId"]

    at_end = await client.post("/subscriptions/cancel", json={"subscriptionId": sub_id, "atPeriodEnd": True})
    assert at_end.status_code == 200
    assert at_end.json()["status"] == "active"
    assert "clientSecret" not in at_end.json()

    now = await client.post("/subscriptions/cancel", json={"subscriptionId": sub_id})
    assert now.json()["status"] == "canceled"

    async with uow_factory(readonly=True) as uow:
        sub = await uow.subscription_repository.get_by_id(sub_id)
        customer = await uow.customer_repository.get_by_billing_id("cus_1")
    assert sub.status.value == "incomplete"
    assert customer.subscription_ids == [sub_id]

    body = encode(
        subscription_event("evt_del", sub_id, event_type="customer.subscription.deleted", status="canceled")
    )
    hook = await client.post("/webhooks/payments", content=body, headers={"stripe-signature": sign_payload(body)})
    assert hook.status_code == 200

    async with uow_factory(readonly=True) as uow:
        sub = await uow.subscription_repository.get_by_id(sub_id)
        customer = await uow.customer_repository.get_by_billing_id("cus_1")
    assert sub.status.value == "canceled"
    assert customer.subscription_ids == []


@pytest.mark.asyncio
async def test_cancel_requires_subscription_id(client):
    resp = await client.post("/subscriptions/cancel", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Subscription ID is required"


@pytest.mark.asyncio
async def test_create_without_client_secret_returns_null(client, gateway):
    gateway.subscription_secret = None
    resp = await client.post("/subscriptions", json={"customerId": "cus_1", "priceId": "price_basic"})
    assert resp.status_code == 200
    body = resp.json()
    assert "clientSecret" in body
    assert body["clientSecret"] is None


@pytest.mark.asyncio
async def test_create_keeps_state_already_written_by_webhook(client, uow_factory):
    await client.post("/customers", json={"email": "ann@example.com", "name": "Ann"})

    # The processor will hand out sub_2; its webhook arrives before the create call returns
    body = encode(subscription_event("evt_early", "sub_2", status="active"))
    hook = await client.post("/webhooks/payments", content=body, headers={"stripe-signature": sign_payload(body)})
    assert hook.status_code == 200

    resp = await client.post("/subscriptions", json={"customerId": "cus_1", "priceId": "price_basic"})
    assert resp.status_code == 200
    assert resp.json()["subscriptionId"] == "sub_2"
    assert resp.json()["status"] == "incomplete"

    async with uow_factory(readonly=True) as uow:
        sub = await uow.subscription_repository.get_by_id("sub_2")
        customer = await uow.customer_repository.get_by_billing_id("cus_1")
    assert sub.status.value == "active"
    assert customer.subscription_ids == ["sub_2"]
