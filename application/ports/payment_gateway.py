"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on these Protocols; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    IntentRequest,
    PaymentMethodView,
    ProcessorCustomer,
    ProcessorIntent,
    ProcessorSubscription,
    SubscriptionRequest,
)
from domain.payment.events import ReconciliationEvent


@runtime_checkable
class PaymentGateway(Protocol):
    """Outbound calls to the payment processor.

    Implementations raise PaymentRecoverableError for transient failures
    (after their own bounded retries) and PaymentProviderError otherwise.
    A declined charge carries the declined intent id in `details["intent_id"]`
    when the processor kept the attempt.
    """

    provider: str

    async def create_intent(self, req: IntentRequest) -> ProcessorIntent: ...

    async def create_customer(
        self, email: str, name: str, *, idempotency_key: Optional[str] = None
    ) -> ProcessorCustomer: ...

    async def update_customer(self, customer_id: str, *, email: str, name: str) -> ProcessorCustomer: ...

    async def attach_payment_method(self, customer_id: str, payment_method_id: str) -> None: ...

    async def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> None: ...

    async def list_payment_methods(self, customer_id: str) -> list[PaymentMethodView]: ...

    async def create_subscription(self, req: SubscriptionRequest) -> ProcessorSubscription: ...

    async def cancel_subscription(
        self, subscription_id: str, *, at_period_end: bool = False
    ) -> ProcessorSubscription: ...


@runtime_checkable
class WebhookVerifier(Protocol):
    """Authenticates inbound processor notifications."""

    provider: str

    def verify(self, body: bytes, signature: Optional[str]) -> dict[str, Any]:
        """Return the verified payload or raise PaymentSignatureError."""
        ...

    def to_event(self, payload: dict[str, Any]) -> ReconciliationEvent: ...
