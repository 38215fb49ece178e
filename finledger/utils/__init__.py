"""Money and calendar helpers."""

from finledger.utils.dates import (
    add_months,
    add_years,
    clamp_day,
    days_in_month,
    month_bounds,
    month_key,
    shift_month,
)
from finledger.utils.money import (
    CENT,
    ZERO,
    format_money,
    from_cents,
    money_sum,
    quantize,
    to_cents,
)

__all__ = [
    "CENT",
    "ZERO",
    "add_months",
    "add_years",
    "clamp_day",
    "days_in_month",
    "format_money",
    "from_cents",
    "money_sum",
    "month_bounds",
    "month_key",
    "quantize",
    "shift_month",
    "to_cents",
]
