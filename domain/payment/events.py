"""
Typed processor events.

The webhook intake turns a verified processor payload into exactly one of
these. Dispatch is by type; anything unrecognised becomes UnknownEvent.
Domain remains free of processor SDK imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from domain.subscription.entity import SubscriptionStatus


@dataclass(frozen=True)
class PaymentIntentSnapshot:
    intent_id: str
    amount: int  # minor units
    currency: str
    status: str
    order_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    customer_id: Optional[str] = None
    failure_message: Optional[str] = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SubscriptionSnapshot:
    subscription_id: str
    customer_id: Optional[str]
    status: SubscriptionStatus
    price_id: Optional[str] = None
    product_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessorEvent:
    event_id: str
    event_type: str
    created: Optional[datetime]


@dataclass(frozen=True)
class PaymentSucceeded(ProcessorEvent):
    intent: PaymentIntentSnapshot


@dataclass(frozen=True)
class PaymentFailed(ProcessorEvent):
    intent: PaymentIntentSnapshot


@dataclass(frozen=True)
class SubscriptionCreated(ProcessorEvent):
    subscription: SubscriptionSnapshot


@dataclass(frozen=True)
class SubscriptionUpdated(ProcessorEvent):
    subscription: SubscriptionSnapshot


@dataclass(frozen=True)
class SubscriptionDeleted(ProcessorEvent):
    subscription: SubscriptionSnapshot


@dataclass(frozen=True)
class UnknownEvent(ProcessorEvent):
    pass


ReconciliationEvent = Union[
    PaymentSucceeded,
    PaymentFailed,
    SubscriptionCreated,
    SubscriptionUpdated,
    SubscriptionDeleted,
    UnknownEvent,
]
