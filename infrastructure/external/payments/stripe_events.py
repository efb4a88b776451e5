"""
Stripe payload shapes -> typed events and snapshots.

Works on plain dicts: a verified webhook body, or an SDK object converted
with `as_plain`.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.common.clock import from_epoch
from domain.payment.events import (
    PaymentFailed,
    PaymentIntentSnapshot,
    PaymentSucceeded,
    ReconciliationEvent,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionSnapshot,
    SubscriptionUpdated,
    UnknownEvent,
)
from domain.subscription.entity import SubscriptionStatus
from shared.codes.payment_codes import SUBSCRIPTION_STATUS_TO_INTERNAL


INTENT_EVENTS = {
    "payment_intent.succeeded": PaymentSucceeded,
    "payment_intent.payment_failed": PaymentFailed,
}

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created": SubscriptionCreated,
    "customer.subscription.updated": SubscriptionUpdated,
    "customer.subscription.deleted": SubscriptionDeleted,
}


def as_plain(obj: Any) -> Any:
    """StripeObject (or anything dict-like) -> plain dict, recursively."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict) and not isinstance(obj, dict):
        obj = to_dict()
    if isinstance(obj, Mapping):
        return {k: as_plain(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [as_plain(v) for v in obj]
    return obj


def ref_id(value: Any) -> Optional[str]:
    """Expandable field: either an id string or the expanded object."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get("id")
    return str(value)


def intent_snapshot(obj: Mapping[str, Any]) -> PaymentIntentSnapshot:
    metadata = dict(obj.get("metadata") or {})
    last_error = obj.get("last_payment_error") or {}
    return PaymentIntentSnapshot(
        intent_id=str(obj["id"]),
        amount=int(obj.get("amount_received") or obj.get("amount") or 0),
        currency=str(obj.get("currency") or "").lower(),
        status=str(obj.get("status") or ""),
        order_id=metadata.get("order_id"),
        payment_method_id=ref_id(obj.get("payment_method")),
        customer_id=ref_id(obj.get("customer")),
        failure_message=last_error.get("message") if isinstance(last_error, Mapping) else None,
        metadata=metadata,
    )


def subscription_status(raw: Optional[str]) -> SubscriptionStatus:
    mapped = SUBSCRIPTION_STATUS_TO_INTERNAL["stripe"].get(raw or "", "incomplete")
    return SubscriptionStatus(mapped)


def subscription_snapshot(obj: Mapping[str, Any]) -> SubscriptionSnapshot:
    items = (obj.get("items") or {}).get("data") or []
    first = items[0] if items else {}
    price = first.get("price") or {}
    price_id = ref_id(price)
    product_id = ref_id(price.get("product")) if isinstance(price, Mapping) else None
    # Newer API versions moved the billing period onto the item
    period_start = obj.get("current_period_start") or first.get("current_period_start")
    period_end = obj.get("current_period_end") or first.get("current_period_end")
    return SubscriptionSnapshot(
        subscription_id=str(obj["id"]),
        customer_id=ref_id(obj.get("customer")),
        status=subscription_status(obj.get("status")),
        price_id=price_id,
        product_id=product_id,
        current_period_start=from_epoch(period_start),
        current_period_end=from_epoch(period_end),
        cancel_at_period_end=bool(obj.get("cancel_at_period_end")),
        canceled_at=from_epoch(obj.get("canceled_at")),
        metadata=dict(obj.get("metadata") or {}),
    )


def to_domain_event(payload: Mapping[str, Any]) -> ReconciliationEvent:
    event_id = str(payload["id"])
    event_type = str(payload["type"])
    created = from_epoch(payload.get("created"))
    obj = (payload.get("data") or {}).get("object") or {}

    if event_type in INTENT_EVENTS:
        return INTENT_EVENTS[event_type](
            event_id=event_id,
            event_type=event_type,
            created=created,
            intent=intent_snapshot(obj),
        )
    if event_type in SUBSCRIPTION_EVENTS:
        return SUBSCRIPTION_EVENTS[event_type](
            event_id=event_id,
            event_type=event_type,
            created=created,
            subscription=subscription_snapshot(obj),
        )
    return UnknownEvent(event_id=event_id, event_type=event_type, created=created)
