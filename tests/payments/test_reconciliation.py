import asyncio
from decimal import Decimal

import pytest

from application.dtos.payments import ChargeResult, ConfirmCharge, CreateOrder
from application.services.order_service import OrderService
from application.services.payment_service import ChargeConfirmationService
from conftest import encode, intent_event, sign_payload, subscription_event
from domain.common.exceptions import OrderStateConflictException
from domain.customer.entity import Customer
from domain.order.entity import Order, OrderStatus, PaymentStatus
from domain.payment.entity import EventStatus
from domain.subscription.entity import SubscriptionStatus


async def deliver(service, event: dict) -> bool:
    body = encode(event)
    return await service.receive(body, sign_payload(body))


async def create_order(uow_factory, clock, order_id="ORD-1", amount="45.50"):
    return await OrderService(uow_factory, clock).create(CreateOrder(order_id=order_id, amount=Decimal(amount)))


async def load_order(uow_factory, order_id="ORD-1") -> Order:
    async with uow_factory(readonly=True) as uow:
        return await uow.order_repository.get_by_id(order_id)


async def load_records(uow_factory, order_id="ORD-1"):
    async with uow_factory(readonly=True) as uow:
        return await uow.payment_record_repository.list_by_order(order_id)


@pytest.mark.asyncio
async def test_redelivered_success_applies_once(webhook_service, uow_factory, clock):
    await create_order(uow_factory, clock)
    event = intent_event("evt_1", "pi_1")

    assert await deliver(webhook_service, event) is True
    assert await deliver(webhook_service, event) is False
    assert await deliver(webhook_service, event) is False

    order = await load_order(uow_factory)
    assert order.payment_status == PaymentStatus.PAID
    assert order.order_status == OrderStatus.CONFIRMED
    assert order.paid_at == clock.now()
    assert len(await load_records(uow_factory)) == 1

    async with uow_factory(readonly=True) as uow:
        entry = await uow.event_ledger_repository.get("evt_1")
    assert entry.status == EventStatus.PROCESSED
    assert entry.attempts == 1


@pytest.mark.asyncio
async def test_concurrent_duplicates_dispatch_once(webhook_service, uow_factory, clock):
    await create_order(uow_factory, clock)
    event = intent_event("evt_1", "pi_1")

    results = await asyncio.gather(*(deliver(webhook_service, event) for _ in range(3)))

    assert sorted(results) == [False, False, True]
    assert len(await load_records(uow_factory)) == 1


@pytest.mark.asyncio
async def test_concurrent_distinct_events_for_same_order(webhook_service, uow_factory, clock):
    await create_order(uow_factory, clock)

    await asyncio.gather(
        deliver(webhook_service, intent_event("evt_a", "pi_1")),
        deliver(webhook_service, intent_event("evt_b", "pi_1")),
    )

    order = await load_order(uow_factory)
    assert order.payment_status == PaymentStatus.PAID
    assert order.version == 1
    assert len(await load_records(uow_factory)) == 1


@pytest.mark.asyncio
async def test_confirmation_racing_webhook_pays_once(webhook_service, gateway, uow_factory, clock):
    await create_order(uow_factory, clock)
    charges = ChargeConfirmationService(gateway, uow_factory, clock)

    # The fake processor issues pi_1 for the first intent
    confirmed, delivered = await asyncio.gather(
        charges.confirm(ConfirmCharge(payment_method_id="pm_card_visa", amount=Decimal("45.50"), order_id="ORD-1")),
        deliver(webhook_service, intent_event("evt_1", "pi_1")),
        return_exceptions=True,
    )

    assert delivered is True
    # A webhook that lands before the order is read turns the confirmation into a 409
    assert isinstance(confirmed, (ChargeResult, OrderStateConflictException))
    order = await load_order(uow_factory)
    assert order.payment_status == PaymentStatus.PAID
    assert order.intent_id == "pi_1"
    assert order.version == 1
    records = await load_records(uow_factory)
    assert [(r.intent_id, r.status.value) for r in records] == [("pi_1", "succeeded")]


@pytest.mark.asyncio
async def test_failure_delivered_after_success_is_ignored(webhook_service, uow_factory, clock):
    await create_order(uow_factory, clock)
    await deliver(webhook_service, intent_event("evt_ok", "pi_1"))
    await deliver(
        webhook_service,
        intent_event("evt_fail", "pi_1", event_type="payment_intent.payment_failed", failure_message="declined"),
    )

    order = await load_order(uow_factory)
    assert order.payment_status == PaymentStatus.PAID
    assert order.order_status == OrderStatus.CONFIRMED
    assert order.failure_reason is None
    assert [r.status.value for r in await load_records(uow_factory)] == ["succeeded"]


@pytest.mark.asyncio
async def test_success_delivered_after_failure_wins(webhook_service, uow_factory, clock):
    await create_order(uow_factory, clock)
    await deliver(
        webhook_service,
        intent_event("evt_fail", "pi_1", event_type="payment_intent.payment_failed", failure_message="declined"),
    )
    order = await load_order(uow_factory)
    assert order.payment_status == PaymentStatus.FAILED
    assert order.order_status == OrderStatus.PAYMENT_FAILED
    assert order.failure_reason == "declined"

    await deliver(webhook_service, intent_event("evt_ok", "pi_1"))
    order = await load_order(uow_factory)
    assert order.payment_status == PaymentStatus.PAID
    assert order.order_status == OrderStatus.CONFIRMED


@pytest.mark.asyncio
async def test_orphaned_success_is_adopted_when_order_is_created(webhook_service, uow_factory, clock):
    assert await deliver(webhook_service, intent_event("evt_1", "pi_9", order_id="ORD-9")) is True
    assert await load_order(uow_factory, "ORD-9") is None

    async with uow_factory(readonly=True) as uow:
        orphan = await uow.orphan_payment_repository.get("pi_9")
        entry = await uow.event_ledger_repository.get("evt_1")
    assert orphan is not None and not orphan.is_linked
    assert entry.status == EventStatus.PROCESSED

    view = await create_order(uow_factory, clock, order_id="ORD-9")
    assert view.payment_status == "paid"
    assert view.order_status == "confirmed"
    assert view.intent_id == "pi_9"

    async with uow_factory(readonly=True) as uow:
        orphan = await uow.orphan_payment_repository.get("pi_9")
    assert orphan.is_linked


@pytest.mark.asyncio
async def test_orphan_sweep_links_orders_created_elsewhere(webhook_service, uow_factory, clock):
    await deliver(webhook_service, intent_event("evt_1", "pi_9", order_id="ORD-9"))
    async with uow_factory() as uow:
        await uow.order_repository.add(Order(id="ORD-9", amount=4550, currency="usd"))

    service = OrderService(uow_factory, clock)
    assert await service.link_orphans() == 1
    assert await service.link_orphans() == 0
    assert (await load_order(uow_factory, "ORD-9")).is_paid


@pytest.mark.asyncio
async def test_orphan_sweep_is_not_blocked_by_orphans_without_an_order(webhook_service, uow_factory, clock):
    await deliver(webhook_service, intent_event("evt_a", "pi_a", order_id="GHOST-A"))
    clock.advance(seconds=1)
    await deliver(webhook_service, intent_event("evt_b", "pi_b", order_id="GHOST-B"))
    clock.advance(seconds=1)
    await deliver(webhook_service, intent_event("evt_c", "pi_c", order_id="ORD-C"))
    async with uow_factory() as uow:
        await uow.order_repository.add(Order(id="ORD-C", amount=4550, currency="usd"))

    service = OrderService(uow_factory, clock)
    assert await service.link_orphans(limit=2) == 1
    assert (await load_order(uow_factory, "ORD-C")).is_paid

    async with uow_factory(readonly=True) as uow:
        ghosts = [await uow.orphan_payment_repository.get(i) for i in ("pi_a", "pi_b")]
    assert not any(g.is_linked for g in ghosts)
    assert await service.link_orphans(limit=2) == 0


@pytest.mark.asyncio
async def test_subscription_deletion_removes_only_that_id(webhook_service, uow_factory, clock):
    async with uow_factory() as uow:
        await uow.customer_repository.add(
            Customer(email="ann@example.com", name="Ann", billing_id="cus_1", subscription_ids=["sub_S", "sub_T"])
        )

    deleted = dict(event_type="customer.subscription.deleted", status="canceled")
    await deliver(webhook_service, subscription_event("evt_1", "sub_S", **deleted))
    await deliver(webhook_service, subscription_event("evt_2", "sub_S", **deleted))

    async with uow_factory(readonly=True) as uow:
        customer = await uow.customer_repository.get_by_billing_id("cus_1")
        sub = await uow.subscription_repository.get_by_id("sub_S")
    assert customer.subscription_ids == ["sub_T"]
    assert sub.status == SubscriptionStatus.CANCELED


@pytest.mark.asyncio
async def test_subscription_created_links_customer(webhook_service, uow_factory, clock):
    async with uow_factory() as uow:
        await uow.customer_repository.add(Customer(email="ann@example.com", name="Ann", billing_id="cus_1"))

    created = subscription_event("evt_1", "sub_1", event_type="customer.subscription.created")
    await deliver(webhook_service, created)
    await deliver(webhook_service, subscription_event("evt_2", "sub_1"))

    async with uow_factory(readonly=True) as uow:
        customer = await uow.customer_repository.get_by_billing_id("cus_1")
        sub = await uow.subscription_repository.get_by_id("sub_1")
    assert customer.subscription_ids == ["sub_1"]
    assert sub.status == SubscriptionStatus.ACTIVE
    assert sub.price_id == "price_basic"


@pytest.mark.asyncio
async def test_out_of_order_subscription_update_is_ignored(webhook_service, uow_factory, clock):
    await deliver(webhook_service, subscription_event("evt_new", "sub_1", status="active", created=1768478400))
    await deliver(webhook_service, subscription_event("evt_old", "sub_1", status="past_due", created=1768478340))

    async with uow_factory(readonly=True) as uow:
        sub = await uow.subscription_repository.get_by_id("sub_1")
    assert sub.status == SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
async def test_update_after_deletion_does_not_resurrect(webhook_service, uow_factory, clock):
    await deliver(
        webhook_service,
        subscription_event("evt_1", "sub_1", event_type="customer.subscription.deleted", status="canceled"),
    )
    await deliver(webhook_service, subscription_event("evt_2", "sub_1", status="active", created=1768478460))

    async with uow_factory(readonly=True) as uow:
        sub = await uow.subscription_repository.get_by_id("sub_1")
    assert sub.status == SubscriptionStatus.CANCELED
