import time

import pytest
import stripe

from application.dtos.payments import IntentRequest, SubscriptionRequest
from domain.subscription.entity import SubscriptionStatus
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError
from infrastructure.external.payments.stripe_client import StripeClient
from shared.codes.payment_codes import PaymentCode


class _Service:
    """Scripted stand-in for one StripeClient service (payment_intents, customers, ...)."""

    def __init__(self, sdk, name):
        self._sdk = sdk
        self._name = name

    def __getattr__(self, method):
        def call(*args, **kwargs):
            self._sdk.calls.append((f"{self._name}.{method}", args, kwargs))
            script = self._sdk.script.get(f"{self._name}.{method}", [])
            result = script.pop(0) if len(script) > 1 else (script[0] if script else {})
            if isinstance(result, Exception):
                raise result
            if callable(result):
                return result(*args, **kwargs)
            return result

        return call


class FakeSDK:
    def __init__(self, **script):
        self.calls = []
        self.script = {k.replace("__", "."): list(v) for k, v in script.items()}
        self.payment_intents = _Service(self, "payment_intents")
        self.customers = _Service(self, "customers")
        self.payment_methods = _Service(self, "payment_methods")
        self.subscriptions = _Service(self, "subscriptions")


def make_client(sdk, *, retries=2, timeout=5.0):
    client = StripeClient(sdk_client=sdk)
    client._timeout = timeout
    client._retry_cfg = {"max": retries, "base": 0.01, "max_backoff": 0.02}
    return client


PI = {
    "id": "pi_1",
    "status": "requires_payment_method",
    "client_secret": "pi_1_secret_abc",
    "amount": 4550,
    "currency": "usd",
}


@pytest.mark.asyncio
async def test_create_intent_without_payment_method_is_not_confirmed():
    sdk = FakeSDK(payment_intents__create=[PI])
    client = make_client(sdk)

    intent = await client.create_intent(
        IntentRequest(amount=4550, currency="usd", metadata={"order_id": "ORD-1"}, idempotency_key="key-1")
    )

    assert intent.id == "pi_1"
    assert intent.client_secret == "pi_1_secret_abc"
    name, _, kwargs = sdk.calls[0]
    assert name == "payment_intents.create"
    assert "confirm" not in kwargs["params"]
    assert "payment_method" not in kwargs["params"]
    assert kwargs["params"]["automatic_payment_methods"] == {"enabled": True}
    assert kwargs["params"]["metadata"] == {"order_id": "ORD-1"}
    assert kwargs["options"] == {"idempotency_key": "key-1"}


@pytest.mark.asyncio
async def test_create_intent_with_payment_method_confirms_without_redirects():
    sdk = FakeSDK(payment_intents__create=[dict(PI, status="succeeded", payment_method="pm_1")])
    client = make_client(sdk)

    intent = await client.create_intent(
        IntentRequest(amount=4550, currency="usd", payment_method_id="pm_1", receipt_email="a@b.co")
    )

    params = sdk.calls[0][2]["params"]
    assert params["confirm"] is True
    assert params["payment_method"] == "pm_1"
    assert params["automatic_payment_methods"] == {"enabled": True, "allow_redirects": "never"}
    assert params["receipt_email"] == "a@b.co"
    assert intent.status == "succeeded"
    assert intent.payment_method_id == "pm_1"


@pytest.mark.asyncio
async def test_transient_failure_is_retried_with_same_key():
    sdk = FakeSDK(payment_intents__create=[stripe.APIConnectionError("connection reset"), PI])
    client = make_client(sdk)

    intent = await client.create_intent(IntentRequest(amount=4550, currency="usd", idempotency_key="key-1"))

    assert intent.id == "pi_1"
    assert len(sdk.calls) == 2
    assert all(call[2]["options"] == {"idempotency_key": "key-1"} for call in sdk.calls)


@pytest.mark.asyncio
async def test_retries_are_bounded():
    sdk = FakeSDK(payment_intents__create=[stripe.RateLimitError("slow down")])
    client = make_client(sdk, retries=2)

    with pytest.raises(PaymentRecoverableError) as info:
        await client.create_intent(IntentRequest(amount=4550, currency="usd"))

    assert info.value.code == PaymentCode.RATE_LIMITED
    assert len(sdk.calls) == 3


@pytest.mark.asyncio
async def test_card_decline_is_not_retried():
    decline = stripe.CardError("Your card was declined.", "payment_method", "card_declined", http_status=402)
    sdk = FakeSDK(payment_intents__create=[decline])
    client = make_client(sdk)

    with pytest.raises(PaymentProviderError) as info:
        await client.create_intent(IntentRequest(amount=4550, currency="usd", payment_method_id="pm_1"))

    assert info.value.message == "Your card was declined."
    assert info.value.provider_code == "card_declined"
    assert len(sdk.calls) == 1


@pytest.mark.asyncio
async def test_card_decline_reports_declined_intent():
    decline = stripe.CardError(
        "Your card was declined.",
        "payment_method",
        "card_declined",
        http_status=402,
        json_body={
            "error": {
                "type": "card_error",
                "code": "card_declined",
                "decline_code": "insufficient_funds",
                "message": "Your card was declined.",
                "payment_intent": {"id": "pi_declined", "object": "payment_intent", "status": "requires_payment_method"},
            }
        },
    )
    sdk = FakeSDK(payment_intents__create=[decline])

    with pytest.raises(PaymentProviderError) as info:
        await make_client(sdk).create_intent(IntentRequest(amount=4550, currency="usd", payment_method_id="pm_1"))

    assert info.value.details["intent_id"] == "pi_declined"


@pytest.mark.asyncio
async def test_slow_call_times_out():
    def slow(*args, **kwargs):
        time.sleep(0.3)
        return PI

    sdk = FakeSDK(payment_intents__create=[slow])
    client = make_client(sdk, retries=0, timeout=0.05)

    with pytest.raises(PaymentRecoverableError) as info:
        await client.create_intent(IntentRequest(amount=4550, currency="usd"))

    assert info.value.code == PaymentCode.TIMEOUT


@pytest.mark.asyncio
async def test_customer_and_payment_method_calls():
    sdk = FakeSDK(
        customers__create=[{"id": "cus_1", "email": "ann@example.com", "name": "Ann"}],
        customers__update=[{"id": "cus_1"}],
        payment_methods__list=[
            {"data": [{"id": "pm_1", "card": {"brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2030}}]}
        ],
    )
    client = make_client(sdk)

    customer = await client.create_customer("ann@example.com", "Ann", idempotency_key="cust-key")
    await client.attach_payment_method("cus_1", "pm_1")
    await client.set_default_payment_method("cus_1", "pm_1")
    methods = await client.list_payment_methods("cus_1")

    assert customer.id == "cus_1"
    assert sdk.calls[0][2]["options"] == {"idempotency_key": "cust-key"}
    assert sdk.calls[1][:2] == ("payment_methods.attach", ("pm_1",))
    assert sdk.calls[1][2]["params"] == {"customer": "cus_1"}
    assert sdk.calls[2][2]["params"] == {"invoice_settings": {"default_payment_method": "pm_1"}}
    assert methods[0].last4 == "4242"
    assert methods[0].brand == "visa"


@pytest.mark.asyncio
async def test_subscription_create_and_cancel():
    sub = {
        "id": "sub_1",
        "customer": "cus_1",
        "status": "incomplete",
        "items": {"data": [{"price": {"id": "price_basic", "product": "prod_basic"}}]},
        "latest_invoice": {"payment_intent": {"client_secret": "pi_sub_secret"}},
    }
    sdk = FakeSDK(
        subscriptions__create=[sub],
        subscriptions__update=[dict(sub, status="active", cancel_at_period_end=True)],
        subscriptions__cancel=[dict(sub, status="canceled", canceled_at=1768478400)],
    )
    client = make_client(sdk)

    created = await client.create_subscription(SubscriptionRequest(customer_id="cus_1", price_id="price_basic"))
    assert created.client_secret == "pi_sub_secret"
    assert created.snapshot.status == SubscriptionStatus.INCOMPLETE
    params = sdk.calls[0][2]["params"]
    assert params["payment_behavior"] == "default_incomplete"
    assert params["items"] == [{"price": "price_basic"}]

    at_end = await client.cancel_subscription("sub_1", at_period_end=True)
    assert sdk.calls[1][0] == "subscriptions.update"
    assert at_end.snapshot.cancel_at_period_end is True

    now = await client.cancel_subscription("sub_1")
    assert sdk.calls[2][0] == "subscriptions.cancel"
    assert now.snapshot.status == SubscriptionStatus.CANCELED
