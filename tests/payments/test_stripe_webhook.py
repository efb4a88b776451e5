import time

import pytest

from conftest import encode, intent_event, sign_payload
from infrastructure.external.payments.exceptions import PaymentSignatureError
from infrastructure.external.payments.stripe_webhook import StripeWebhookVerifier
from domain.payment.events import PaymentSucceeded


def test_verify_accepts_signed_payload(verifier):
    body = encode(intent_event("evt_1", "pi_1"))
    payload = verifier.verify(body, sign_payload(body))
    assert payload["id"] == "evt_1"
    assert payload["type"] == "payment_intent.succeeded"
    event = verifier.to_event(payload)
    assert isinstance(event, PaymentSucceeded)
    assert event.intent.order_id == "ORD-1"


def test_verify_rejects_tampered_body(verifier):
    body = encode(intent_event("evt_1", "pi_1"))
    header = sign_payload(body)
    tampered = encode(intent_event("evt_1", "pi_1", amount=1))
    with pytest.raises(PaymentSignatureError):
        verifier.verify(tampered, header)


def test_verify_rejects_wrong_secret(verifier):
    body = encode(intent_event("evt_1", "pi_1"))
    with pytest.raises(PaymentSignatureError):
        verifier.verify(body, sign_payload(body, secret="whsec_other"))


def test_verify_rejects_stale_timestamp(verifier):
    body = encode(intent_event("evt_1", "pi_1"))
    with pytest.raises(PaymentSignatureError):
        verifier.verify(body, sign_payload(body, timestamp=int(time.time()) - 3600))


def test_verify_requires_header(verifier):
    body = encode(intent_event("evt_1", "pi_1"))
    with pytest.raises(PaymentSignatureError) as info:
        verifier.verify(body, None)
    assert info.value.message == "Missing Stripe-Signature header"


def test_verify_requires_configured_secret(monkeypatch):
    from core.settings import payment_settings

    monkeypatch.setattr(payment_settings.stripe, "webhook_secret", None)
    body = encode(intent_event("evt_1", "pi_1"))
    with pytest.raises(PaymentSignatureError) as info:
        StripeWebhookVerifier().verify(body, sign_payload(body))
    assert "STRIPE__WEBHOOK_SECRET" in info.value.message


def test_signed_body_without_event_id_is_rejected(verifier):
    body = b'{"type":"payment_intent.succeeded"}'
    with pytest.raises(PaymentSignatureError) as info:
        verifier.verify(body, sign_payload(body))
    assert info.value.message == "Invalid payload"
