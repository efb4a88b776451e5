"""
Payment specific codes and processor status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    RATE_LIMITED = 60004


# Processor intent status -> what the storefront shows the caller
PROVIDER_STATUS_TO_INTERNAL = {
    "stripe": {
        "requires_payment_method": "requires_payment_method",
        "requires_confirmation": "pending",
        "requires_action": "requires_action",
        "processing": "processing",
        "requires_capture": "pending",
        "succeeded": "succeeded",
        "canceled": "canceled",
    },
}

# Processor subscription status -> local Subscription.status
SUBSCRIPTION_STATUS_TO_INTERNAL = {
    "stripe": {
        "incomplete": "incomplete",
        "incomplete_expired": "canceled",
        "trialing": "active",
        "active": "active",
        "past_due": "past_due",
        "unpaid": "past_due",
        "paused": "past_due",
        "canceled": "canceled",
    },
}

# Currencies the processor charges without a minor unit
ZERO_DECIMAL_CURRENCIES = {
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
}
