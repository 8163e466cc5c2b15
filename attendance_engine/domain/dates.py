"""
Immutable calendar arithmetic.

Every helper returns a new ``date``; nothing here mutates its inputs, so
stepping through months cannot drift the way an in-place "end of month"
call would.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from datetime import date, timedelta


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def start_of_month(value: date) -> date:
    return value.replace(day=1)


def end_of_month(value: date) -> date:
    return value.replace(day=calendar.monthrange(value.year, value.month)[1])


def completed_months(start: date, today: date) -> Iterator[date]:
    """Yield the first day of every month from ``start``'s month whose last day is before ``today``.

    Only months of ``today``'s year are produced.
    """
    cursor = start_of_month(start)
    while end_of_month(cursor) < today and cursor.year == today.year:
        yield cursor
        cursor = add_months(cursor, 1)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every date from ``start`` to ``end`` inclusive."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)
