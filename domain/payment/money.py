"""
Minor-unit conversion.

Amounts cross the API as decimals in major units and are stored and sent to
the processor as integer minor units.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from shared.codes.payment_codes import ZERO_DECIMAL_CURRENCIES


Number = Union[Decimal, int, float, str]


def currency_exponent(currency: str) -> int:
    return 0 if (currency or "").lower() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount: Number, currency: str = "usd") -> int:
    """19.99 usd -> 1999. Half-up rounding; floats go through str() to avoid binary noise."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    scaled = value * (Decimal(10) ** currency_exponent(currency))
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str = "usd") -> Decimal:
    """1999 usd -> Decimal('19.99')."""
    exponent = currency_exponent(currency)
    quantum = Decimal(1).scaleb(-exponent)
    return (Decimal(int(amount)) / (Decimal(10) ** exponent)).quantize(quantum)
