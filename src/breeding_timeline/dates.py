from __future__ import annotations

import calendar
import datetime as _dt
from typing import Any


DAY_FORMAT = "%Y-%m-%d"
LABEL_FORMAT = "%b %d, %Y"


def parse_day(value: Any) -> _dt.date | None:
    """
    Coerce a date-like value to a calendar day, or None.

    Accepts date, datetime and ISO-8601 strings with or without a time part.
    Any time-of-day component is dropped. Values that do not parse are treated
    as absent rather than raising.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if len(text) < 10:
        return None
    try:
        return _dt.date.fromisoformat(text[:10])
    except ValueError:
        return None


def add_days(day: _dt.date, days: int) -> _dt.date:
    return day + _dt.timedelta(days=days)


def add_months(day: _dt.date, months: int) -> _dt.date:
    """Shift by whole months, clamping the day to the target month's length."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return _dt.date(year, month, min(day.day, last))


def start_of_month(day: _dt.date) -> _dt.date:
    return day.replace(day=1)


def end_of_month(day: _dt.date) -> _dt.date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def months_inclusive(start: _dt.date, end: _dt.date) -> int:
    """Number of calendar months touched by [start, end], counting both ends."""
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def min_day(a: _dt.date | None, b: _dt.date | None) -> _dt.date | None:
    if a is None:
        return b
    if b is None:
        return a
    return a if a <= b else b


def max_day(a: _dt.date | None, b: _dt.date | None) -> _dt.date | None:
    if a is None:
        return b
    if b is None:
        return a
    return a if a >= b else b


def format_day(day: _dt.date | None) -> str | None:
    return day.strftime(DAY_FORMAT) if day is not None else None


def format_label(day: _dt.date) -> str:
    return day.strftime(LABEL_FORMAT)
