"""
Customer use-cases: upsert by email, save and list payment methods.
"""
from __future__ import annotations

from typing import Callable

from application.dtos.payments import (
    CustomerResult,
    PaymentMethodList,
    SavePaymentMethod,
    UpsertCustomer,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import _ensure_idempotency_key
from application.utils.guarded import run_guarded
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.clock import Clock
from domain.common.exceptions import CustomerNotFoundException, DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.customer.entity import Customer


logger = get_logger(__name__)


class CustomerService:
    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
    ) -> None:
        self.gateway = gateway
        self._uow_factory = uow_factory
        self._clock = clock

    async def _guarded(self, work):
        return await run_guarded(
            self._uow_factory, work, attempts=payment_settings.reconciliation.cas_max_attempts
        )

    async def upsert(self, req: UpsertCustomer) -> CustomerResult:
        """
        Create or refresh the processor customer for an email.

        At most one local customer exists per email; concurrent upserts for a
        new email converge on the first inserted row.
        """
        if not req.email or not req.name:
            raise DomainValidationException("Email and name are required", missing=True)
        email = req.email.strip().lower()

        async with self._uow_factory(readonly=True) as uow:
            existing = await uow.customer_repository.get_by_email(email)

        if existing is not None and existing.billing_id:
            billing_id = existing.billing_id
            await self.gateway.update_customer(billing_id, email=email, name=req.name)
            logger.info("customer_updated", customer_id=billing_id)
        else:
            created = await self.gateway.create_customer(
                email,
                req.name,
                idempotency_key=_ensure_idempotency_key("customer", email),
            )
            billing_id = created.id
            logger.info("customer_created", customer_id=billing_id)

        async def persist(uow: AbstractUnitOfWork):
            now = self._clock.now()
            customer = await uow.customer_repository.get_by_email(email)
            if customer is None:
                customer = Customer(
                    email=email,
                    name=req.name,
                    billing_id=billing_id,
                    created_at=now,
                    updated_at=now,
                )
                await uow.customer_repository.add(customer)
                return customer.billing_id
            expected = customer.version
            changed = customer.rename(req.name, now)
            if not customer.billing_id:
                changed = customer.link_billing(billing_id, now) or changed
            if changed:
                await uow.customer_repository.save(customer, expected_version=expected)
            return customer.billing_id

        billing_id = await self._guarded(persist)

        if req.payment_method_id:
            await self._attach(billing_id, req.payment_method_id, make_default=True)

        return CustomerResult(success=True, customer_id=billing_id)

    async def save_payment_method(self, req: SavePaymentMethod) -> CustomerResult:
        if not req.customer_id or not req.payment_method_id:
            raise DomainValidationException("Customer ID and payment method ID are required", missing=True)
        async with self._uow_factory(readonly=True) as uow:
            customer = await uow.customer_repository.get_by_billing_id(req.customer_id)
        if customer is None:
            raise CustomerNotFoundException(req.customer_id)
        await self._attach(req.customer_id, req.payment_method_id, make_default=req.make_default)
        return CustomerResult(success=True, customer_id=req.customer_id)

    async def list_payment_methods(self, customer_id: str) -> PaymentMethodList:
        methods = await self.gateway.list_payment_methods(customer_id)
        return PaymentMethodList(success=True, payment_methods=methods)

    async def _attach(self, billing_id: str, payment_method_id: str, *, make_default: bool) -> None:
        await self.gateway.attach_payment_method(billing_id, payment_method_id)
        if make_default:
            await self.gateway.set_default_payment_method(billing_id, payment_method_id)

        async def record(uow: AbstractUnitOfWork):
            customer = await uow.customer_repository.get_by_billing_id(billing_id)
            if customer is None:
                return
            expected = customer.version
            if customer.add_payment_method(payment_method_id, self._clock.now()):
                await uow.customer_repository.save(customer, expected_version=expected)

        await self._guarded(record)
        logger.info(
            "payment_method_saved",
            customer_id=billing_id,
            payment_method_id=payment_method_id,
            default=make_default,
        )
