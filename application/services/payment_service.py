"""
Application services for charge attempts.

These classes depend only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API/tasks), keeping dependencies one-way.
"""
from __future__ import annotations

import hashlib
import uuid
from decimal import Decimal
from typing import Any, Callable, Optional

from application.dtos.payments import (
    ChargeResult,
    ConfirmCharge,
    CreateIntent,
    IntentRequest,
    IntentResult,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.reconciliation import (
    ReconciliationOutcome,
    apply_payment_failed,
    apply_payment_succeeded,
)
from application.utils.guarded import run_guarded
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.clock import Clock
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    OrderNotFoundException,
    OrderStateConflictException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, TransitionResult
from domain.payment.events import PaymentIntentSnapshot
from domain.payment.money import to_minor_units


logger = get_logger(__name__)


def _ensure_idempotency_key(op: str, *parts: Any, explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit
    # Stable, reproducible key derived from business identifiers (no timestamp)
    base = "|".join([op, *("" if p is None else str(p) for p in parts)])
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


def require_amount_minor(amount: Optional[Decimal], currency: str) -> int:
    """Amount in minor units; anything that rounds below one minor unit is rejected."""
    if amount is None:
        raise DomainValidationException("Amount is required", field="amount", missing=True)
    amount_minor = to_minor_units(amount, currency) if amount > 0 else 0
    if amount_minor <= 0:
        raise DomainValidationException("Amount must be greater than 0", field="amount")
    return amount_minor


async def attach_intent_to_order(
    uow: AbstractUnitOfWork,
    order_id: str,
    intent_id: str,
    *,
    now,
) -> TransitionResult:
    order = await uow.order_repository.get_by_id(order_id)
    if order is None:
        logger.warning("intent_order_unknown", order_id=order_id, intent_id=intent_id)
        return TransitionResult.REJECTED
    expected = order.version
    result = order.attach_intent(intent_id, now)
    if result is TransitionResult.APPLIED:
        await uow.order_repository.save(order, expected_version=expected)
    elif result is TransitionResult.REJECTED:
        logger.warning(
            "intent_attach_rejected",
            order_id=order_id,
            intent_id=intent_id,
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
        )
    return result


class IntentService:
    """Creates charge attempts for the client to confirm (or confirms them server side)."""

    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
    ) -> None:
        self.gateway = gateway
        self._uow_factory = uow_factory
        self._clock = clock

    async def create_intent(self, req: CreateIntent) -> IntentResult:
        currency = req.currency or payment_settings.default_currency
        amount_minor = require_amount_minor(req.amount, currency)
        metadata = {k: v for k, v in (req.metadata or {}).items() if v is not None}
        order_id = metadata.get("order_id")
        if req.idempotency_key or order_id:
            key = _ensure_idempotency_key(
                "intent",
                order_id,
                amount_minor,
                currency,
                req.payment_method_id,
                explicit=req.idempotency_key,
            )
        else:
            # Nothing identifies the checkout, so every request is a new intent
            key = uuid.uuid4().hex
        logger.info(
            "payment_create_request",
            order_id=order_id,
            provider=self.gateway.provider,
            amount=amount_minor,
            currency=currency,
            confirm=bool(req.payment_method_id),
            idempotency_key=key,
        )
        intent = await self.gateway.create_intent(
            IntentRequest(
                amount=amount_minor,
                currency=currency,
                payment_method_id=req.payment_method_id,
                customer_id=req.customer_id,
                receipt_email=req.receipt_email,
                metadata=metadata,
                idempotency_key=key,
            )
        )
        logger.info(
            "payment_create_response",
            order_id=order_id,
            provider=self.gateway.provider,
            intent_id=intent.id,
            status=intent.status,
        )

        if order_id:
            async def work(uow: AbstractUnitOfWork):
                return await attach_intent_to_order(uow, str(order_id), intent.id, now=self._clock.now())

            await run_guarded(self._uow_factory, work, attempts=payment_settings.reconciliation.cas_max_attempts)

        return IntentResult(client_secret=intent.client_secret, id=intent.id, status=intent.status)


class ChargeConfirmationService:
    """Server-side charge of a saved payment method against an existing order."""

    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
    ) -> None:
        self.gateway = gateway
        self._uow_factory = uow_factory
        self._clock = clock

    async def confirm(self, req: ConfirmCharge) -> ChargeResult:
        if not req.payment_method_id or req.amount is None or not req.order_id:
            raise DomainValidationException(
                "Payment method ID, amount, and order ID are required", missing=True
            )
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(req.order_id)
        if order is None:
            raise OrderNotFoundException(req.order_id)
        if order.is_paid:
            raise OrderStateConflictException(order.id, "Order is already paid")

        amount_minor = require_amount_minor(req.amount, order.currency)
        if amount_minor != order.amount:
            logger.warning(
                "charge_amount_mismatch",
                order_id=order.id,
                order_amount=order.amount,
                charge_amount=amount_minor,
            )
        # One key per recorded attempt: order.version moves on after a decline
        key = _ensure_idempotency_key(
            "confirm", order.id, order.version, req.payment_method_id, amount_minor, order.currency,
            explicit=req.idempotency_key,
        )
        logger.info(
            "payment_confirm_request",
            order_id=order.id,
            provider=self.gateway.provider,
            amount=amount_minor,
            idempotency_key=key,
        )
        try:
            intent = await self.gateway.create_intent(
                IntentRequest(
                    amount=amount_minor,
                    currency=order.currency,
                    payment_method_id=req.payment_method_id,
                    customer_id=order.customer_id,
                    receipt_email=order.email,
                    metadata={"order_id": order.id},
                    idempotency_key=key,
                )
            )
        except BusinessException as exc:
            declined = (exc.details or {}).get("intent_id")
            if declined:
                await self._record_decline(order, declined, req.payment_method_id, amount_minor, exc.message)
            raise
        logger.info(
            "payment_confirm_response",
            order_id=order.id,
            intent_id=intent.id,
            status=intent.status,
        )

        if intent.status == "succeeded":
            snapshot = PaymentIntentSnapshot(
                intent_id=intent.id,
                amount=intent.amount,
                currency=intent.currency,
                status=intent.status,
                order_id=order.id,
                payment_method_id=intent.payment_method_id or req.payment_method_id,
                customer_id=intent.customer_id,
            )

            async def work(uow: AbstractUnitOfWork):
                return await apply_payment_succeeded(uow, snapshot, now=self._clock.now())
        else:
            async def work(uow: AbstractUnitOfWork):
                return await attach_intent_to_order(uow, order.id, intent.id, now=self._clock.now())

        await run_guarded(self._uow_factory, work, attempts=payment_settings.reconciliation.cas_max_attempts)
        return ChargeResult(success=True, payment_intent_id=intent.id, status=intent.status)

    async def _record_decline(
        self,
        order: Order,
        intent_id: str,
        payment_method_id: str,
        amount_minor: int,
        reason: str,
    ) -> None:
        """Point the order at the declined attempt and apply the payment failed transition."""
        snapshot = PaymentIntentSnapshot(
            intent_id=intent_id,
            amount=amount_minor,
            currency=order.currency,
            status="requires_payment_method",
            order_id=order.id,
            payment_method_id=payment_method_id,
            failure_message=reason,
        )

        async def work(uow: AbstractUnitOfWork):
            now = self._clock.now()
            if await attach_intent_to_order(uow, order.id, intent_id, now=now) is TransitionResult.REJECTED:
                return ReconciliationOutcome.IGNORED
            return await apply_payment_failed(uow, snapshot, now=now)

        outcome = await run_guarded(
            self._uow_factory, work, attempts=payment_settings.reconciliation.cas_max_attempts
        )
        logger.info("payment_confirm_declined", order_id=order.id, intent_id=intent_id, outcome=outcome.value)
