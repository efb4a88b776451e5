"""
Stripe webhook verification.

The signature covers the exact request bytes, so verification runs on the
raw body before any JSON parsing.
"""
from __future__ import annotations

import json
from typing import Any, Optional

import stripe

from core.settings import payment_settings
from domain.payment.events import ReconciliationEvent
from infrastructure.external.payments.exceptions import PaymentSignatureError
from infrastructure.external.payments.stripe_events import to_domain_event


class StripeWebhookVerifier:
    provider = "stripe"

    def __init__(self, secret: Optional[str] = None, tolerance: Optional[int] = None) -> None:
        self._secret = secret or payment_settings.stripe.webhook_secret
        self._tolerance = tolerance if tolerance is not None else payment_settings.webhook.tolerance_seconds

    def verify(self, body: bytes, signature: Optional[str]) -> dict[str, Any]:
        if not self._secret:
            raise PaymentSignatureError("Missing STRIPE__WEBHOOK_SECRET", provider=self.provider)
        if not signature:
            raise PaymentSignatureError("Missing Stripe-Signature header", provider=self.provider)
        try:
            payload = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PaymentSignatureError("Invalid payload", provider=self.provider) from exc

        try:
            stripe.WebhookSignature.verify_header(payload, signature, self._secret, self._tolerance)
        except stripe.SignatureVerificationError as exc:
            raise PaymentSignatureError(str(exc.user_message or exc), provider=self.provider) from exc

        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise PaymentSignatureError("Invalid payload", provider=self.provider) from exc
        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise PaymentSignatureError("Invalid payload", provider=self.provider)
        return event

    def to_event(self, payload: dict[str, Any]) -> ReconciliationEvent:
        return to_domain_event(payload)
