"""
Subscription use-cases. A new subscription is stored from the processor response;
after that local state is kept current by the subscription webhooks only.
"""
from __future__ import annotations

from typing import Callable

from application.dtos.payments import (
    CancelSubscription,
    CreateSubscription,
    SubscriptionRequest,
    SubscriptionResult,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import _ensure_idempotency_key
from application.services.reconciliation import ReconciliationOutcome, upsert_subscription
from application.utils.guarded import run_guarded
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.clock import Clock
from domain.common.exceptions import DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class SubscriptionService:
    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
    ) -> None:
        self.gateway = gateway
        self._uow_factory = uow_factory
        self._clock = clock

    async def create(self, req: CreateSubscription) -> SubscriptionResult:
        if not req.customer_id or not req.price_id:
            raise DomainValidationException("Customer ID and price ID are required", missing=True)

        created = await self.gateway.create_subscription(
            SubscriptionRequest(
                customer_id=req.customer_id,
                price_id=req.price_id,
                metadata=req.metadata or {},
                idempotency_key=_ensure_idempotency_key("subscription", req.customer_id, req.price_id),
            )
        )
        snapshot = created.snapshot
        logger.info(
            "subscription_created",
            subscription_id=snapshot.subscription_id,
            customer_id=snapshot.customer_id,
            status=snapshot.status.value,
        )

        async def work(uow: AbstractUnitOfWork):
            # A subscription webhook may already have stored a newer state
            if await uow.subscription_repository.get_by_id(snapshot.subscription_id) is not None:
                logger.info("subscription_already_recorded", subscription_id=snapshot.subscription_id)
                return ReconciliationOutcome.NOOP
            return await upsert_subscription(uow, snapshot, now=self._clock.now())

        await run_guarded(self._uow_factory, work, attempts=payment_settings.reconciliation.cas_max_attempts)
        return SubscriptionResult(
            success=True,
            subscription_id=snapshot.subscription_id,
            status=snapshot.status.value,
            client_secret=created.client_secret,
        )

    async def cancel(self, req: CancelSubscription) -> SubscriptionResult:
        """
        Ask the processor to cancel. Local state is finalized by the
        subscription updated/deleted webhooks, not here.
        """
        if not req.subscription_id:
            raise DomainValidationException(
                "Subscription ID is required", field="subscription_id", missing=True
            )

        canceled = await self.gateway.cancel_subscription(req.subscription_id, at_period_end=req.at_period_end)
        snapshot = canceled.snapshot
        logger.info(
            "subscription_cancel_requested",
            subscription_id=snapshot.subscription_id,
            at_period_end=req.at_period_end,
            status=snapshot.status.value,
        )
        return SubscriptionResult(
            success=True,
            subscription_id=snapshot.subscription_id,
            status=snapshot.status.value,
        )
