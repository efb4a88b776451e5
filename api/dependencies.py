"""
API dependencies - composition root for services.

Tests replace the leaf providers (gateway, verifier, unit of work, clock)
through `app.dependency_overrides`.
"""
from functools import lru_cache
from typing import Callable

from fastapi import Depends

from application.ports.payment_gateway import PaymentGateway, WebhookVerifier
from application.services.customer_service import CustomerService
from application.services.order_service import OrderService
from application.services.payment_service import ChargeConfirmationService, IntentService
from application.services.reconciliation import ReconciliationHandlers
from application.services.subscription_service import SubscriptionService
from application.services.webhook_service import WebhookService
from core.settings import payment_settings
from domain.common.clock import Clock, SystemClock
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.external.payments import get_payment_gateway as build_payment_gateway
from infrastructure.external.payments import get_webhook_verifier as build_webhook_verifier
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    return build_payment_gateway()


@lru_cache(maxsize=1)
def get_webhook_verifier() -> WebhookVerifier:
    return build_webhook_verifier()


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


def get_clock() -> Clock:
    return SystemClock()


async def get_intent_service(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    uow_factory=Depends(get_uow_factory),
    clock: Clock = Depends(get_clock),
) -> IntentService:
    return IntentService(gateway, uow_factory, clock)


async def get_charge_service(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    uow_factory=Depends(get_uow_factory),
    clock: Clock = Depends(get_clock),
) -> ChargeConfirmationService:
    return ChargeConfirmationService(gateway, uow_factory, clock)


async def get_customer_service(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    uow_factory=Depends(get_uow_factory),
    clock: Clock = Depends(get_clock),
) -> CustomerService:
    return CustomerService(gateway, uow_factory, clock)


async def get_subscription_service(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    uow_factory=Depends(get_uow_factory),
    clock: Clock = Depends(get_clock),
) -> SubscriptionService:
    return SubscriptionService(gateway, uow_factory, clock)


async def get_order_service(
    uow_factory=Depends(get_uow_factory),
    clock: Clock = Depends(get_clock),
) -> OrderService:
    return OrderService(uow_factory, clock)


async def get_webhook_service(
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    uow_factory=Depends(get_uow_factory),
    clock: Clock = Depends(get_clock),
) -> WebhookService:
    handlers = ReconciliationHandlers(
        uow_factory,
        clock,
        cas_attempts=payment_settings.reconciliation.cas_max_attempts,
    )
    return WebhookService(verifier, handlers, uow_factory, clock)
