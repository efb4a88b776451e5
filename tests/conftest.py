"""Pytest bootstrap configuration.

Environment defaults are set before collection because settings are read
when application modules are first imported.
"""
import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///./storefront_test.db")
os.environ.setdefault("STRIPE__SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE__WEBHOOK_SECRET", "whsec_test")

import httpx
import pytest
import pytest_asyncio

from application.dtos.payments import (
    IntentRequest,
    PaymentMethodView,
    ProcessorCustomer,
    ProcessorIntent,
    ProcessorSubscription,
    SubscriptionRequest,
)
from domain.payment.events import SubscriptionSnapshot
from domain.subscription.entity import SubscriptionStatus
from infrastructure.database import build_engine, build_session_factory, create_tables, drop_tables
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


WEBHOOK_SECRET = "whsec_test"


class FixedClock:
    def __init__(self, now: Optional[datetime] = None):
        self.current = now or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeGateway:
    """Scripted processor double; records every call it receives."""

    provider = "fake"

    def __init__(self):
        self.calls = []
        self.intents = {}
        self.confirm_status = "succeeded"
        self.subscription_secret: Optional[str] = "pi_sub_secret"
        self.fail_with: Optional[Exception] = None
        self._seq = 0

    def _next(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def _record(self, op, *args, **kwargs):
        self.calls.append((op, args, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    async def create_intent(self, req: IntentRequest) -> ProcessorIntent:
        self._record("create_intent", req)
        intent_id = self._next("pi")
        status = self.confirm_status if req.confirm else "requires_payment_method"
        intent = ProcessorIntent(
            id=intent_id,
            status=status,
            client_secret=f"{intent_id}_secret_abc",
            amount=req.amount,
            currency=req.currency,
            payment_method_id=req.payment_method_id,
            customer_id=req.customer_id,
        )
        self.intents[intent_id] = intent
        return intent

    async def create_customer(self, email, name, *, idempotency_key=None) -> ProcessorCustomer:
        self._record("create_customer", email, name, idempotency_key=idempotency_key)
        return ProcessorCustomer(id=self._next("cus"), email=email, name=name)

    async def update_customer(self, customer_id, *, email, name) -> ProcessorCustomer:
        self._record("update_customer", customer_id, email=email, name=name)
        return ProcessorCustomer(id=customer_id, email=email, name=name)

    async def attach_payment_method(self, customer_id, payment_method_id) -> None:
        self._record("attach_payment_method", customer_id, payment_method_id)

    async def set_default_payment_method(self, customer_id, payment_method_id) -> None:
        self._record("set_default_payment_method", customer_id, payment_method_id)

    async def list_payment_methods(self, customer_id):
        self._record("list_payment_methods", customer_id)
        return [PaymentMethodView(id="pm_card_visa", brand="visa", last4="4242", exp_month=12, exp_year=2030)]

    async def create_subscription(self, req: SubscriptionRequest) -> ProcessorSubscription:
        self._record("create_subscription", req)
        snapshot = SubscriptionSnapshot(
            subscription_id=self._next("sub"),
            customer_id=req.customer_id,
            status=SubscriptionStatus.INCOMPLETE,
            price_id=req.price_id,
        )
        return ProcessorSubscription(snapshot=snapshot, client_secret=self.subscription_secret)

    async def cancel_subscription(self, subscription_id, *, at_period_end=False) -> ProcessorSubscription:
        self._record("cancel_subscription", subscription_id, at_period_end=at_period_end)
        snapshot = SubscriptionSnapshot(
            subscription_id=subscription_id,
            customer_id=None,
            status=SubscriptionStatus.ACTIVE if at_period_end else SubscriptionStatus.CANCELED,
            cancel_at_period_end=at_period_end,
        )
        return ProcessorSubscription(snapshot=snapshot)

    def names(self):
        return [c[0] for c in self.calls]


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for `payload`."""
    ts = int(time.time()) if timestamp is None else int(timestamp)
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def intent_event(
    event_id: str,
    intent_id: str,
    *,
    event_type: str = "payment_intent.succeeded",
    order_id: Optional[str] = "ORD-1",
    amount: int = 4550,
    currency: str = "usd",
    created: int = 1768478400,
    failure_message: Optional[str] = None,
) -> dict:
    status = "succeeded" if event_type == "payment_intent.succeeded" else "requires_payment_method"
    obj = {
        "id": intent_id,
        "object": "payment_intent",
        "amount": amount,
        "amount_received": amount if status == "succeeded" else 0,
        "currency": currency,
        "status": status,
        "payment_method": "pm_card_visa",
        "customer": "cus_1",
        "metadata": {"order_id": order_id} if order_id else {},
    }
    if failure_message:
        obj["last_payment_error"] = {"message": failure_message}
    return {"id": event_id, "object": "event", "type": event_type, "created": created, "data": {"object": obj}}


def subscription_event(
    event_id: str,
    subscription_id: str,
    *,
    event_type: str = "customer.subscription.updated",
    status: str = "active",
    customer: str = "cus_1",
    created: int = 1768478400,
) -> dict:
    obj = {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": False,
        "canceled_at": created if status == "canceled" else None,
        "current_period_start": 1768478400,
        "current_period_end": 1771156800,
        "items": {"data": [{"price": {"id": "price_basic", "product": "prod_basic"}}]},
        "metadata": {},
    }
    return {"id": event_id, "object": "event", "type": event_type, "created": created, "data": {"object": obj}}


def encode(event: dict) -> bytes:
    return json.dumps(event, separators=(",", ":")).encode("utf-8")


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")
    await create_tables(eng)
    yield eng
    await drop_tables(eng)
    await eng.dispose()


@pytest.fixture
def uow_factory(engine):
    return partial(SQLAlchemyUnitOfWork, build_session_factory(engine))


@pytest.fixture
def verifier():
    from infrastructure.external.payments.stripe_webhook import StripeWebhookVerifier
    return StripeWebhookVerifier(secret=WEBHOOK_SECRET, tolerance=300)


@pytest.fixture
def webhook_service(verifier, uow_factory, clock):
    from application.services.reconciliation import ReconciliationHandlers
    from application.services.webhook_service import WebhookService
    return WebhookService(verifier, ReconciliationHandlers(uow_factory, clock), uow_factory, clock)


@pytest_asyncio.fixture
async def client(uow_factory, clock, gateway, verifier):
    from api import dependencies as deps
    from main import app

    app.dependency_overrides[deps.get_uow_factory] = lambda: uow_factory
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[deps.get_webhook_verifier] = lambda: verifier
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
