"""Calendar helpers for month arithmetic with day clamping."""

import calendar
from datetime import date


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, pulling day back to the last valid day of the month."""
    return date(year, month, min(day, days_in_month(year, month)))


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """(year, month) moved by delta months, handling year rollover."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def add_months(d: date, months: int, day: int | None = None) -> date:
    """
    Move d by a number of months keeping its day-of-month (or the given
    anchor day), clamped to the target month's length.

    add_months(date(2024, 1, 31), 1) -> date(2024, 2, 29)
    """
    year, month = shift_month(d.year, d.month, months)
    return clamp_day(year, month, day if day is not None else d.day)


def add_years(d: date, years: int) -> date:
    """Same month and day, Feb 29 falls back to Feb 28 on common years."""
    return clamp_day(d.year + years, d.month, d.day)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def month_key(d: date) -> str:
    """YYYY-MM label used by monthly reports."""
    return f"{d.year:04d}-{d.month:02d}"
