"""
Reconciliation handlers: apply processor events to local aggregates.

Every write goes through `run_guarded`, so two concurrent deliveries
touching the same order resolve to one applied transition and one no-op.
The module-level helpers run inside a caller-provided unit of work and
are shared with the order, charge and subscription services.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

from application.utils.guarded import run_guarded
from core.logging_config import get_logger
from domain.common.clock import Clock
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, TransitionResult
from domain.payment.entity import OrphanPayment, PaymentRecord, PaymentRecordStatus
from domain.payment.events import (
    PaymentFailed,
    PaymentIntentSnapshot,
    PaymentSucceeded,
    ReconciliationEvent,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionSnapshot,
    SubscriptionUpdated,
)
from domain.subscription.entity import Subscription


logger = get_logger(__name__)


class ReconciliationOutcome(str, Enum):
    APPLIED = "applied"
    NOOP = "noop"
    IGNORED = "ignored"      # stale or not allowed from the current state
    ORPHANED = "orphaned"    # no local order; kept for later adoption
    UNHANDLED = "unhandled"


_RESULT_TO_OUTCOME = {
    TransitionResult.APPLIED: ReconciliationOutcome.APPLIED,
    TransitionResult.NOOP: ReconciliationOutcome.NOOP,
    TransitionResult.REJECTED: ReconciliationOutcome.IGNORED,
}


async def find_order_for_intent(uow: AbstractUnitOfWork, intent: PaymentIntentSnapshot) -> Optional[Order]:
    order = None
    if intent.order_id:
        order = await uow.order_repository.get_by_id(intent.order_id)
    if order is None:
        order = await uow.order_repository.get_by_intent_id(intent.intent_id)
    return order


async def apply_payment_succeeded(
    uow: AbstractUnitOfWork,
    intent: PaymentIntentSnapshot,
    *,
    now: datetime,
    event_id: Optional[str] = None,
) -> ReconciliationOutcome:
    order = await find_order_for_intent(uow, intent)
    if order is None:
        existing = await uow.orphan_payment_repository.get(intent.intent_id)
        if existing is None:
            await uow.orphan_payment_repository.add(
                OrphanPayment(
                    intent_id=intent.intent_id,
                    amount=intent.amount,
                    currency=intent.currency,
                    order_id=intent.order_id,
                    customer_id=intent.customer_id,
                    payment_method_id=intent.payment_method_id,
                    event_id=event_id,
                    metadata=intent.metadata,
                    created_at=now,
                )
            )
        logger.warning(
            "reconciliation_warning",
            reason="order_not_found",
            order_id=intent.order_id,
            intent_id=intent.intent_id,
            amount=intent.amount,
            currency=intent.currency,
            event_id=event_id,
        )
        return ReconciliationOutcome.ORPHANED

    expected = order.version
    result = order.mark_paid(
        intent.intent_id,
        now,
        amount=intent.amount,
        payment_method_id=intent.payment_method_id,
    )
    if result is not TransitionResult.APPLIED:
        if order.intent_id and order.intent_id != intent.intent_id:
            # Second successful charge for an order that is already paid
            logger.warning(
                "reconciliation_warning",
                reason="order_already_paid",
                order_id=order.id,
                paid_intent_id=order.intent_id,
                intent_id=intent.intent_id,
                event_id=event_id,
            )
        return _RESULT_TO_OUTCOME[result]

    await uow.order_repository.save(order, expected_version=expected)
    await uow.payment_record_repository.add(
        PaymentRecord(
            id=None,
            order_id=order.id,
            intent_id=intent.intent_id,
            status=PaymentRecordStatus.SUCCEEDED,
            amount=intent.amount,
            currency=intent.currency,
            payment_method_id=intent.payment_method_id,
            event_id=event_id,
            created_at=now,
        )
    )
    logger.info("order_paid", order_id=order.id, intent_id=intent.intent_id, event_id=event_id)
    return ReconciliationOutcome.APPLIED


async def apply_payment_failed(
    uow: AbstractUnitOfWork,
    intent: PaymentIntentSnapshot,
    *,
    now: datetime,
    event_id: Optional[str] = None,
) -> ReconciliationOutcome:
    order = await find_order_for_intent(uow, intent)
    if order is None:
        logger.warning(
            "payment_failed_order_not_found",
            order_id=intent.order_id,
            intent_id=intent.intent_id,
            event_id=event_id,
        )
        return ReconciliationOutcome.IGNORED

    expected = order.version
    reason = intent.failure_message or "Payment failed"
    result = order.mark_payment_failed(
        intent.intent_id,
        now,
        reason=reason,
        payment_method_id=intent.payment_method_id,
    )
    if result is not TransitionResult.APPLIED:
        logger.info(
            "payment_failed_ignored",
            order_id=order.id,
            intent_id=intent.intent_id,
            payment_status=order.payment_status.value,
            result=result.value,
        )
        return _RESULT_TO_OUTCOME[result]

    await uow.order_repository.save(order, expected_version=expected)
    await uow.payment_record_repository.add(
        PaymentRecord(
            id=None,
            order_id=order.id,
            intent_id=intent.intent_id,
            status=PaymentRecordStatus.FAILED,
            amount=intent.amount,
            currency=intent.currency,
            payment_method_id=intent.payment_method_id,
            failure_reason=reason,
            event_id=event_id,
            created_at=now,
        )
    )
    logger.info("order_payment_failed", order_id=order.id, intent_id=intent.intent_id, reason=reason)
    return ReconciliationOutcome.APPLIED


async def link_customer_subscription(
    uow: AbstractUnitOfWork,
    billing_id: Optional[str],
    subscription_id: str,
    *,
    now: datetime,
    linked: bool,
) -> None:
    """Add or remove `subscription_id` in the customer's set (idempotent)."""
    if not billing_id:
        return
    customer = await uow.customer_repository.get_by_billing_id(billing_id)
    if customer is None:
        logger.info("subscription_customer_unknown", customer_id=billing_id, subscription_id=subscription_id)
        return
    expected = customer.version
    if linked:
        changed = customer.add_subscription(subscription_id, now)
    else:
        changed = customer.remove_subscription(subscription_id, now)
    if changed:
        await uow.customer_repository.save(customer, expected_version=expected)


async def upsert_subscription(
    uow: AbstractUnitOfWork,
    snapshot: SubscriptionSnapshot,
    *,
    now: datetime,
    event_at: Optional[datetime] = None,
) -> ReconciliationOutcome:
    subscription = await uow.subscription_repository.get_by_id(snapshot.subscription_id)
    if subscription is None:
        subscription = Subscription.from_snapshot(snapshot, now=now, event_at=event_at)
        await uow.subscription_repository.add(subscription)
        outcome = ReconciliationOutcome.APPLIED
    else:
        expected = subscription.version
        result = subscription.apply_snapshot(snapshot, now=now, event_at=event_at)
        if result is TransitionResult.APPLIED:
            await uow.subscription_repository.save(subscription, expected_version=expected)
        outcome = _RESULT_TO_OUTCOME[result]

    if outcome is ReconciliationOutcome.IGNORED:
        logger.info(
            "subscription_update_ignored",
            subscription_id=subscription.id,
            status=subscription.status.value,
            incoming_status=snapshot.status.value,
        )
        return outcome

    await link_customer_subscription(
        uow,
        subscription.customer_id,
        subscription.id,
        now=now,
        linked=not subscription.is_canceled,
    )
    return outcome


async def cancel_local_subscription(
    uow: AbstractUnitOfWork,
    snapshot: SubscriptionSnapshot,
    *,
    now: datetime,
    event_at: Optional[datetime] = None,
) -> ReconciliationOutcome:
    subscription = await uow.subscription_repository.get_by_id(snapshot.subscription_id)
    if subscription is None:
        subscription = Subscription.from_snapshot(snapshot, now=now, event_at=event_at)
        subscription.mark_canceled(now=now, event_at=event_at, canceled_at=snapshot.canceled_at)
        await uow.subscription_repository.add(subscription)
        outcome = ReconciliationOutcome.APPLIED
    else:
        expected = subscription.version
        result = subscription.mark_canceled(now=now, event_at=event_at, canceled_at=snapshot.canceled_at)
        if result is TransitionResult.APPLIED:
            await uow.subscription_repository.save(subscription, expected_version=expected)
        outcome = _RESULT_TO_OUTCOME[result]

    await link_customer_subscription(
        uow,
        subscription.customer_id or snapshot.customer_id,
        subscription.id,
        now=now,
        linked=False,
    )
    return outcome


Handler = Callable[[ReconciliationEvent], Awaitable[ReconciliationOutcome]]


class ReconciliationHandlers:
    """One handler per typed event; each runs as a guarded write."""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
        *,
        cas_attempts: int = 5,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock
        self._cas_attempts = cas_attempts

    def routes(self) -> dict[type, Handler]:
        return {
            PaymentSucceeded: self.payment_succeeded,
            PaymentFailed: self.payment_failed,
            SubscriptionCreated: self.subscription_created,
            SubscriptionUpdated: self.subscription_updated,
            SubscriptionDeleted: self.subscription_deleted,
        }

    async def _guarded(self, work):
        return await run_guarded(self._uow_factory, work, attempts=self._cas_attempts)

    async def payment_succeeded(self, event: PaymentSucceeded) -> ReconciliationOutcome:
        async def work(uow: AbstractUnitOfWork):
            return await apply_payment_succeeded(
                uow, event.intent, now=self._clock.now(), event_id=event.event_id
            )

        return await self._guarded(work)

    async def payment_failed(self, event: PaymentFailed) -> ReconciliationOutcome:
        async def work(uow: AbstractUnitOfWork):
            return await apply_payment_failed(
                uow, event.intent, now=self._clock.now(), event_id=event.event_id
            )

        return await self._guarded(work)

    async def subscription_created(self, event: SubscriptionCreated) -> ReconciliationOutcome:
        async def work(uow: AbstractUnitOfWork):
            return await upsert_subscription(
                uow, event.subscription, now=self._clock.now(), event_at=event.created
            )

        return await self._guarded(work)

    async def subscription_updated(self, event: SubscriptionUpdated) -> ReconciliationOutcome:
        async def work(uow: AbstractUnitOfWork):
            return await upsert_subscription(
                uow, event.subscription, now=self._clock.now(), event_at=event.created
            )

        return await self._guarded(work)

    async def subscription_deleted(self, event: SubscriptionDeleted) -> ReconciliationOutcome:
        async def work(uow: AbstractUnitOfWork):
            return await cancel_local_subscription(
                uow, event.subscription, now=self._clock.now(), event_at=event.created
            )

        return await self._guarded(work)
