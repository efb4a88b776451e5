"""
Order aggregate - payment and fulfilment status of one checkout.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.clock import ensure_utc
from domain.common.exceptions import DomainValidationException
from domain.payment.money import from_minor_units


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    CANCELLED = "cancelled"


class TransitionResult(str, Enum):
    """Outcome of applying a transition to an aggregate."""
    APPLIED = "applied"
    NOOP = "noop"          # already in the target state
    REJECTED = "rejected"  # stale or not allowed from the current state


@dataclass
class Order:
    """
    Order aggregate.

    Rules:
    1. payment_status leaves pending only towards paid or failed.
    2. paid is terminal; a succeeded payment may still replace failed.
    3. A retry after failure attaches a new intent and resets to pending.
    4. order_status is confirmed only while payment_status is paid.
    5. A cancelled order is never un-cancelled by a late payment.

    Transition methods mutate the aggregate only when they return APPLIED.
    `version` is the compare-and-set guard used by the repository.
    """

    id: str
    amount: int  # minor units
    currency: str
    customer_id: Optional[str] = None
    email: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    intent_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    failure_reason: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        if not self.id:
            raise DomainValidationException("Order ID is required", field="order_id", missing=True)
        if self.amount is None or int(self.amount) < 0:
            raise DomainValidationException(f"Invalid order amount: {self.amount}", field="amount")
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(f"Invalid currency: {self.currency}", field="currency")
        self.currency = self.currency.lower()
        self.metadata = dict(self.metadata or {})
        # Webhooks locate the order through this key
        self.metadata.setdefault("order_id", self.id)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)
        self.paid_at = ensure_utc(self.paid_at)

    @property
    def amount_decimal(self) -> Decimal:
        return from_minor_units(self.amount, self.currency)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def attach_intent(self, intent_id: str, at: datetime) -> TransitionResult:
        """Point the order at a (new) charge attempt."""
        if self.intent_id == intent_id:
            return TransitionResult.NOOP
        if self.payment_status == PaymentStatus.PAID or self.order_status == OrderStatus.CANCELLED:
            return TransitionResult.REJECTED
        self.intent_id = intent_id
        self.payment_status = PaymentStatus.PENDING
        if self.order_status == OrderStatus.PAYMENT_FAILED:
            self.order_status = OrderStatus.PENDING
        self.failure_reason = None
        self.updated_at = at
        return TransitionResult.APPLIED

    def mark_paid(
        self,
        intent_id: str,
        at: datetime,
        *,
        amount: Optional[int] = None,
        payment_method_id: Optional[str] = None,
    ) -> TransitionResult:
        if self.payment_status == PaymentStatus.PAID:
            return TransitionResult.NOOP
        if self.payment_status == PaymentStatus.REFUNDED:
            return TransitionResult.REJECTED
        self.payment_status = PaymentStatus.PAID
        if self.order_status != OrderStatus.CANCELLED:
            self.order_status = OrderStatus.CONFIRMED
        self.intent_id = intent_id
        if amount is not None:
            self.amount = int(amount)
        if payment_method_id:
            self.payment_method_id = payment_method_id
        self.failure_reason = None
        self.paid_at = at
        self.updated_at = at
        return TransitionResult.APPLIED

    def mark_payment_failed(
        self,
        intent_id: str,
        at: datetime,
        *,
        reason: Optional[str] = None,
        payment_method_id: Optional[str] = None,
    ) -> TransitionResult:
        if self.payment_status == PaymentStatus.PAID:
            return TransitionResult.REJECTED
        if self.payment_status == PaymentStatus.FAILED and self.intent_id == intent_id:
            return TransitionResult.NOOP
        if self.payment_status != PaymentStatus.PENDING:
            return TransitionResult.REJECTED
        # A failure for an attempt the order has already moved past
        if self.intent_id and self.intent_id != intent_id:
            return TransitionResult.REJECTED
        self.payment_status = PaymentStatus.FAILED
        if self.order_status != OrderStatus.CANCELLED:
            self.order_status = OrderStatus.PAYMENT_FAILED
        self.intent_id = intent_id
        if payment_method_id:
            self.payment_method_id = payment_method_id
        self.failure_reason = reason or "Payment failed"
        self.updated_at = at
        return TransitionResult.APPLIED

    def cancel(self, at: datetime) -> TransitionResult:
        if self.order_status == OrderStatus.CANCELLED:
            return TransitionResult.NOOP
        if self.payment_status == PaymentStatus.PAID:
            return TransitionResult.REJECTED
        self.order_status = OrderStatus.CANCELLED
        self.updated_at = at
        return TransitionResult.APPLIED
