"""
Stripe adapter using the official stripe-python SDK.

Notes on SDK usage:
- Uses the client/service pattern (`stripe.StripeClient`) so the API key and
  version stay on the instance instead of module globals.
- Idempotency keys travel in request options.
- SDK calls are blocking; BasePaymentClient runs them in a worker thread.
"""
from __future__ import annotations

from typing import Any, Optional

import stripe

from application.dtos.payments import (
    IntentRequest,
    PaymentMethodView,
    ProcessorCustomer,
    ProcessorIntent,
    ProcessorSubscription,
    SubscriptionRequest,
)
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentGatewayError,
    PaymentProviderError,
    PaymentRecoverableError,
)
from infrastructure.external.payments.stripe_events import (
    as_plain,
    ref_id,
    subscription_snapshot,
)
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


def _options(idempotency_key: Optional[str]) -> dict:
    return {"idempotency_key": idempotency_key} if idempotency_key else {}


class StripeClient(BasePaymentClient):
    provider = "stripe"

    def __init__(
        self,
        *,
        secret_key: Optional[str] = None,
        api_version: Optional[str] = None,
        sdk_client: Any = None,
    ):
        super().__init__(
            timeout=payment_settings.timeouts.total,
            retry={
                "max": payment_settings.retry.max,
                "base": payment_settings.retry.base_backoff,
                "max_backoff": payment_settings.retry.max_backoff,
            },
        )
        if sdk_client is None:
            key = secret_key or payment_settings.stripe.secret_key
            if not key:
                raise RuntimeError("STRIPE__SECRET_KEY not configured")
            sdk_client = stripe.StripeClient(
                key,
                stripe_version=api_version or payment_settings.stripe.api_version,
                # Retries are ours, so they share one idempotency key and one budget
                max_network_retries=0,
            )
        self._stripe = sdk_client

    def _translate_error(self, exc: Exception) -> Optional[PaymentGatewayError]:
        if isinstance(exc, stripe.RateLimitError):
            return PaymentRecoverableError(
                exc.user_message or "Too many requests to the payment processor",
                provider=self.provider,
                provider_code=exc.code,
                code=PaymentCode.RATE_LIMITED,
            )
        if isinstance(exc, stripe.APIConnectionError):
            return PaymentRecoverableError(
                "Could not reach the payment processor", provider=self.provider, provider_code=exc.code
            )
        if isinstance(exc, stripe.APIError) and (exc.http_status or 0) >= 500:
            return PaymentRecoverableError(
                exc.user_message or "Payment processor error", provider=self.provider, provider_code=exc.code
            )
        if isinstance(exc, stripe.CardError):
            details = {}
            if getattr(exc, "decline_code", None):
                details["decline_code"] = exc.decline_code
            # The processor keeps the declined attempt; callers record it against the order
            declined = ref_id(getattr(getattr(exc, "error", None), "payment_intent", None))
            if declined:
                details["intent_id"] = declined
            return PaymentProviderError(
                exc.user_message or "Your card was declined",
                provider=self.provider,
                provider_code=exc.code,
                details=details or None,
            )
        if isinstance(exc, stripe.StripeError):
            return PaymentProviderError(
                exc.user_message or str(exc) or "Payment processor rejected the request",
                provider=self.provider,
                provider_code=exc.code,
            )
        return None

    # Payment intents

    async def create_intent(self, req: IntentRequest) -> ProcessorIntent:
        params: dict[str, Any] = {
            "amount": req.amount,
            "currency": req.currency,
            "metadata": {k: str(v) for k, v in req.metadata.items()},
        }
        if req.confirm:
            params["payment_method"] = req.payment_method_id
            params["confirm"] = True
            # Server-side confirmation cannot follow redirects
            params["automatic_payment_methods"] = {"enabled": True, "allow_redirects": "never"}
        else:
            params["automatic_payment_methods"] = {"enabled": True}
        if req.customer_id:
            params["customer"] = req.customer_id
        if req.receipt_email:
            params["receipt_email"] = req.receipt_email

        self._log("stripe_intent_create", amount=req.amount, currency=req.currency, confirm=req.confirm)
        pi = as_plain(
            await self._call(
                "payment_intents.create",
                self._stripe.payment_intents.create,
                params=params,
                options=_options(req.idempotency_key),
            )
        )
        return ProcessorIntent(
            id=str(pi["id"]),
            status=self._map_status(str(pi.get("status") or "")),
            client_secret=pi.get("client_secret"),
            amount=int(pi.get("amount") or req.amount),
            currency=str(pi.get("currency") or req.currency),
            payment_method_id=ref_id(pi.get("payment_method")),
            customer_id=ref_id(pi.get("customer")),
        )

    # Customers and payment methods

    async def create_customer(
        self, email: str, name: str, *, idempotency_key: Optional[str] = None
    ) -> ProcessorCustomer:
        customer = as_plain(
            await self._call(
                "customers.create",
                self._stripe.customers.create,
                params={"email": email, "name": name},
                options=_options(idempotency_key),
            )
        )
        return ProcessorCustomer(id=str(customer["id"]), email=customer.get("email"), name=customer.get("name"))

    async def update_customer(self, customer_id: str, *, email: str, name: str) -> ProcessorCustomer:
        customer = as_plain(
            await self._call(
                "customers.update",
                self._stripe.customers.update,
                customer_id,
                params={"email": email, "name": name},
            )
        )
        return ProcessorCustomer(id=str(customer["id"]), email=customer.get("email"), name=customer.get("name"))

    async def attach_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        await self._call(
            "payment_methods.attach",
            self._stripe.payment_methods.attach,
            payment_method_id,
            params={"customer": customer_id},
        )

    async def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        await self._call(
            "customers.update",
            self._stripe.customers.update,
            customer_id,
            params={"invoice_settings": {"default_payment_method": payment_method_id}},
        )

    async def list_payment_methods(self, customer_id: str) -> list[PaymentMethodView]:
        listing = as_plain(
            await self._call(
                "payment_methods.list",
                self._stripe.payment_methods.list,
                params={"customer": customer_id, "type": "card"},
            )
        )
        methods = []
        for pm in listing.get("data") or []:
            card = pm.get("card") or {}
            methods.append(
                PaymentMethodView(
                    id=str(pm["id"]),
                    brand=card.get("brand"),
                    last4=card.get("last4"),
                    exp_month=card.get("exp_month"),
                    exp_year=card.get("exp_year"),
                )
            )
        return methods

    # Subscriptions

    async def create_subscription(self, req: SubscriptionRequest) -> ProcessorSubscription:
        sub = as_plain(
            await self._call(
                "subscriptions.create",
                self._stripe.subscriptions.create,
                params={
                    "customer": req.customer_id,
                    "items": [{"price": req.price_id}],
                    "metadata": {k: str(v) for k, v in req.metadata.items()},
                    "payment_behavior": "default_incomplete",
                    "expand": ["latest_invoice.payment_intent"],
                },
                options=_options(req.idempotency_key),
            )
        )
        invoice = sub.get("latest_invoice") or {}
        intent = invoice.get("payment_intent") if isinstance(invoice, dict) else None
        client_secret = intent.get("client_secret") if isinstance(intent, dict) else None
        return ProcessorSubscription(snapshot=subscription_snapshot(sub), client_secret=client_secret)

    async def cancel_subscription(self, subscription_id: str, *, at_period_end: bool = False) -> ProcessorSubscription:
        if at_period_end:
            sub = await self._call(
                "subscriptions.update",
                self._stripe.subscriptions.update,
                subscription_id,
                params={"cancel_at_period_end": True},
            )
        else:
            sub = await self._call("subscriptions.cancel", self._stripe.subscriptions.cancel, subscription_id)
        return ProcessorSubscription(snapshot=subscription_snapshot(as_plain(sub)))

