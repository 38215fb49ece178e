"""
Exact money arithmetic.

Amounts are Decimals with two places. Any operation that splits money
(installments, proportional shares) works in integer cents so the parts
always add back to the whole.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal | int | str) -> Decimal:
    """Round half-up to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    return int((Decimal(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def money_sum(values: Iterable[Decimal]) -> Decimal:
    return sum((Decimal(v) for v in values), ZERO)


def format_money(amount: Decimal, currency: str = "BRL") -> str:
    """Human-readable amount, e.g. ``BRL 1,234.50``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency} {abs(quantize(amount)):,.2f}"
