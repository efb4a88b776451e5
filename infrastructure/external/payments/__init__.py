"""
Factory for payment gateway clients and webhook verifiers.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import PaymentGateway, WebhookVerifier


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    name = (provider or "stripe").lower()
    if name == "stripe":
        from .stripe_client import StripeClient
        return StripeClient()
    raise ValueError(f"Unsupported payment provider: {name}")


def get_webhook_verifier(provider: Optional[str] = None) -> WebhookVerifier:
    name = (provider or "stripe").lower()
    if name == "stripe":
        from .stripe_webhook import StripeWebhookVerifier
        return StripeWebhookVerifier()
    raise ValueError(f"Unsupported payment provider: {name}")
