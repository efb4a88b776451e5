"""
Payment DTOs (Pydantic v2) used at application boundaries.

Request/response bodies use camelCase on the wire and snake_case in code.
Processor-facing DTOs carry amounts in minor units; caller-facing ones in
major units as Decimal.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from domain.payment.events import SubscriptionSnapshot


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _normalize_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    u = v.strip().lower()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    return u


# ---------------------------------------------------------------------------
# Caller-facing requests/responses
# ---------------------------------------------------------------------------


class CreateIntent(CamelModel):
    # Optional so a missing amount surfaces as "Amount is required"
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method_id: Optional[str] = None
    receipt_email: Optional[str] = None
    customer_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    idempotency_key: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_currency(v)


class IntentResult(CamelModel):
    client_secret: Optional[str] = None
    id: str
    status: str


class ConfirmCharge(CamelModel):
    payment_method_id: Optional[str] = None
    amount: Optional[Decimal] = None
    order_id: Optional[str] = None
    idempotency_key: Optional[str] = None


class ChargeResult(CamelModel):
    success: bool
    payment_intent_id: str
    status: str


class UpsertCustomer(CamelModel):
    email: Optional[str] = None
    name: Optional[str] = None
    payment_method_id: Optional[str] = None


class CustomerResult(CamelModel):
    success: bool = True
    customer_id: str


class SavePaymentMethod(CamelModel):
    customer_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    make_default: bool = True


class PaymentMethodView(CamelModel):
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


class PaymentMethodList(CamelModel):
    success: bool = True
    payment_methods: list[PaymentMethodView] = Field(default_factory=list)


class CreateSubscription(CamelModel):
    customer_id: Optional[str] = None
    price_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class SubscriptionResult(CamelModel):
    success: bool = True
    subscription_id: str
    status: str
    client_secret: Optional[str] = None


class CancelSubscription(CamelModel):
    subscription_id: Optional[str] = None
    at_period_end: bool = False


class CreateOrder(CamelModel):
    order_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    customer_id: Optional[str] = None
    email: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_currency(v)


class OrderView(CamelModel):
    id: str
    amount: Decimal
    currency: str
    customer_id: Optional[str] = None
    email: Optional[str] = None
    payment_status: str
    order_status: str
    intent_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    failure_reason: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class WebhookAck(CamelModel):
    received: bool = True


class ReplayResult(CamelModel):
    event_id: str
    event_type: str
    status: str
    replayed: bool


# ---------------------------------------------------------------------------
# Processor-facing DTOs (gateway port)
# ---------------------------------------------------------------------------


class IntentRequest(BaseModel):
    amount: int  # minor units
    currency: str
    payment_method_id: Optional[str] = None
    customer_id: Optional[str] = None
    receipt_email: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: Optional[str] = None

    @property
    def confirm(self) -> bool:
        return bool(self.payment_method_id)


class ProcessorIntent(BaseModel):
    id: str
    status: str
    client_secret: Optional[str] = None
    amount: int
    currency: str
    payment_method_id: Optional[str] = None
    customer_id: Optional[str] = None


class ProcessorCustomer(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class SubscriptionRequest(BaseModel):
    customer_id: str
    price_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: Optional[str] = None


class ProcessorSubscription(BaseModel):
    snapshot: SubscriptionSnapshot
    client_secret: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)
