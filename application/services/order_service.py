"""
Order use-cases and orphaned-payment adoption.
"""
from __future__ import annotations

from typing import Callable

from application.dtos.payments import CreateOrder, OrderView
from application.services.payment_service import require_amount_minor
from application.services.reconciliation import (
    ReconciliationOutcome,
    apply_payment_succeeded,
    find_order_for_intent,
)
from application.utils.guarded import run_guarded
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.clock import Clock
from domain.common.exceptions import (
    DomainValidationException,
    OrderNotFoundException,
    OrderStateConflictException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, TransitionResult
from domain.payment.entity import OrphanPayment
from domain.payment.events import PaymentIntentSnapshot


logger = get_logger(__name__)


def to_order_view(order: Order) -> OrderView:
    return OrderView(
        id=order.id,
        amount=order.amount_decimal,
        currency=order.currency,
        customer_id=order.customer_id,
        email=order.email,
        payment_status=order.payment_status.value,
        order_status=order.order_status.value,
        intent_id=order.intent_id,
        payment_method_id=order.payment_method_id,
        failure_reason=order.failure_reason,
        metadata=order.metadata,
        created_at=order.created_at,
        updated_at=order.updated_at,
        paid_at=order.paid_at,
    )


def _orphan_snapshot(orphan: OrphanPayment) -> PaymentIntentSnapshot:
    return PaymentIntentSnapshot(
        intent_id=orphan.intent_id,
        amount=orphan.amount,
        currency=orphan.currency,
        status="succeeded",
        order_id=orphan.order_id,
        payment_method_id=orphan.payment_method_id,
        customer_id=orphan.customer_id,
        metadata=orphan.metadata,
    )


class OrderService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    async def _guarded(self, work):
        return await run_guarded(
            self._uow_factory, work, attempts=payment_settings.reconciliation.cas_max_attempts
        )

    async def create(self, req: CreateOrder) -> OrderView:
        """
        Create a pending order. Creating an id that already exists returns the
        stored order unchanged. A charge that succeeded before the order existed
        is applied immediately.
        """
        if not req.order_id:
            raise DomainValidationException("Order ID is required", field="order_id", missing=True)
        currency = req.currency or payment_settings.default_currency
        amount_minor = require_amount_minor(req.amount, currency)

        async def work(uow: AbstractUnitOfWork):
            existing = await uow.order_repository.get_by_id(req.order_id)
            if existing is not None:
                return False
            now = self._clock.now()
            await uow.order_repository.add(
                Order(
                    id=req.order_id,
                    amount=amount_minor,
                    currency=currency,
                    customer_id=req.customer_id,
                    email=req.email,
                    metadata=req.metadata or {},
                    created_at=now,
                    updated_at=now,
                )
            )
            return True

        created = await self._guarded(work)
        if created:
            logger.info("order_created", order_id=req.order_id, amount=amount_minor, currency=currency)
            await self.adopt_orphans(req.order_id)
        return await self.get(req.order_id)

    async def get(self, order_id: str) -> OrderView:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return to_order_view(order)

    async def cancel(self, order_id: str) -> OrderView:
        async def work(uow: AbstractUnitOfWork):
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            expected = order.version
            result = order.cancel(self._clock.now())
            if result is TransitionResult.REJECTED:
                raise OrderStateConflictException(order_id, "Paid orders cannot be cancelled")
            if result is TransitionResult.APPLIED:
                await uow.order_repository.save(order, expected_version=expected)
                logger.info("order_cancelled", order_id=order_id)
            return to_order_view(order)

        return await self._guarded(work)

    async def adopt_orphans(self, order_id: str) -> int:
        async with self._uow_factory(readonly=True) as uow:
            orphans = await uow.orphan_payment_repository.list_unlinked(order_id=order_id)
        linked = 0
        for orphan in orphans:
            if await self._adopt(orphan):
                linked += 1
        return linked

    async def link_orphans(self, limit: int = 100) -> int:
        """Periodic sweep: apply orphaned charges whose order now exists."""
        async with self._uow_factory(readonly=True) as uow:
            orphans = await uow.orphan_payment_repository.list_unlinked(limit=limit, adoptable_only=True)
        linked = 0
        for orphan in orphans:
            if await self._adopt(orphan):
                linked += 1
        if orphans:
            logger.info("orphan_sweep_finished", scanned=len(orphans), linked=linked)
        return linked

    async def _adopt(self, orphan: OrphanPayment) -> bool:
        snapshot = _orphan_snapshot(orphan)

        async def work(uow: AbstractUnitOfWork):
            if await find_order_for_intent(uow, snapshot) is None:
                return False
            now = self._clock.now()
            outcome = await apply_payment_succeeded(uow, snapshot, now=now, event_id=orphan.event_id)
            if outcome is ReconciliationOutcome.ORPHANED:
                return False
            await uow.orphan_payment_repository.mark_linked(orphan.intent_id, now)
            logger.info(
                "orphan_payment_linked",
                intent_id=orphan.intent_id,
                order_id=orphan.order_id,
                outcome=outcome.value,
            )
            return True

        return await self._guarded(work)
