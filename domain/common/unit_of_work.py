"""Unit of Work abstraction"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.customer.repository import CustomerRepository
from domain.order.repository import OrderRepository
from domain.payment.repository import (
    EventLedgerRepository,
    OrphanPaymentRepository,
    PaymentRecordRepository,
)
from domain.subscription.repository import SubscriptionRepository


class AbstractUnitOfWork(ABC):
    """Transaction boundary used by the application layer"""

    order_repository: OrderRepository
    customer_repository: CustomerRepository
    subscription_repository: SubscriptionRepository
    payment_record_repository: PaymentRecordRepository
    orphan_payment_repository: OrphanPaymentRepository
    event_ledger_repository: EventLedgerRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.order_repository = None  # type: ignore[assignment]
        self.customer_repository = None  # type: ignore[assignment]
        self.subscription_repository = None  # type: ignore[assignment]
        self.payment_record_repository = None  # type: ignore[assignment]
        self.orphan_payment_repository = None  # type: ignore[assignment]
        self.event_ledger_repository = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            # Commit only when writable and not committed explicitly
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
