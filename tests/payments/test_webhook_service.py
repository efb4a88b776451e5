import pytest

from application.services.reconciliation import ReconciliationHandlers
from application.services.webhook_service import WebhookService
from conftest import encode, intent_event, sign_payload
from domain.common.exceptions import EventNotFoundException
from domain.order.entity import Order
from domain.payment.entity import EventStatus
from infrastructure.external.payments.exceptions import PaymentSignatureError


class FlakyHandlers(ReconciliationHandlers):
    """Fails the first payment_succeeded call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = 1

    async def payment_succeeded(self, event):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("database unavailable")
        return await super().payment_succeeded(event)


async def ledger_entry(uow_factory, event_id):
    async with uow_factory(readonly=True) as uow:
        return await uow.event_ledger_repository.get(event_id)


@pytest.mark.asyncio
async def test_invalid_signature_touches_nothing(webhook_service, uow_factory):
    body = encode(intent_event("evt_1", "pi_1"))
    with pytest.raises(PaymentSignatureError):
        await webhook_service.receive(body, "t=1,v1=deadbeef")
    assert await ledger_entry(uow_factory, "evt_1") is None


@pytest.mark.asyncio
async def test_unknown_event_is_acknowledged_and_recorded(webhook_service, uow_factory):
    body = encode({"id": "evt_x", "type": "charge.refunded", "created": 1768478400, "data": {"object": {}}})
    assert await webhook_service.receive(body, sign_payload(body)) is True
    entry = await ledger_entry(uow_factory, "evt_x")
    assert entry.status == EventStatus.PROCESSED
    assert entry.event_type == "charge.refunded"


@pytest.mark.asyncio
async def test_handler_failure_is_recorded_and_replayable(verifier, uow_factory, clock):
    service = WebhookService(verifier, FlakyHandlers(uow_factory, clock), uow_factory, clock)
    async with uow_factory() as uow:
        await uow.order_repository.add(Order(id="ORD-1", amount=4550, currency="usd"))

    body = encode(intent_event("evt_1", "pi_1"))
    assert await service.receive(body, sign_payload(body)) is True
    entry = await ledger_entry(uow_factory, "evt_1")
    assert entry.status == EventStatus.FAILED
    assert entry.error == "database unavailable"

    # Redelivery is still de-duplicated; recovery goes through replay
    assert await service.receive(body, sign_payload(body)) is False

    result = await service.replay("evt_1")
    assert result.replayed is True
    assert result.status == "processed"
    entry = await ledger_entry(uow_factory, "evt_1")
    assert entry.status == EventStatus.PROCESSED
    assert entry.attempts == 2
    assert entry.error is None

    again = await service.replay("evt_1")
    assert again.replayed is False

    async with uow_factory(readonly=True) as uow:
        assert (await uow.order_repository.get_by_id("ORD-1")).is_paid


@pytest.mark.asyncio
async def test_replay_unknown_event(webhook_service):
    with pytest.raises(EventNotFoundException):
        await webhook_service.replay("evt_missing")


@pytest.mark.asyncio
async def test_purge_removes_only_old_processed_rows(verifier, uow_factory, clock):
    service = WebhookService(verifier, FlakyHandlers(uow_factory, clock), uow_factory, clock)
    failed = encode(intent_event("evt_failed", "pi_1", order_id=None))
    processed = encode({"id": "evt_done", "type": "charge.refunded", "data": {"object": {}}})
    await service.receive(failed, sign_payload(failed))
    await service.receive(processed, sign_payload(processed))

    assert await service.purge_ledger(30) == 0
    clock.advance(days=31)
    assert await service.purge_ledger(30) == 1

    assert await ledger_entry(uow_factory, "evt_done") is None
    assert (await ledger_entry(uow_factory, "evt_failed")).status == EventStatus.FAILED
