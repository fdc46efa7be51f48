from __future__ import annotations

import calendar
from datetime import date


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def shift_months(value: date, months: int) -> date:
    """Move ``value`` by whole calendar months, clamping the day to the target month."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def trailing_window_start(as_of: date, months: int) -> date:
    return shift_months(as_of, -months)
