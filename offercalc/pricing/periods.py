"""Date-span helpers shared by crew and transport pricing."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)


def span_days(start: datetime, end: datetime) -> int:
    """Calendar days spanned by a period, rounded up (may be <= 0)."""
    return math.ceil((end - start) / _DAY)


def billable_days(start: datetime, end: datetime) -> int:
    """Days charged for a period: at least one."""
    return max(1, span_days(start, end))


def hours_per_day_from_dates(start: datetime | None, end: datetime | None) -> float | None:
    """Average hours per spanned calendar day.

    Returns None when either date is missing or the span is not positive.
    """
    if start is None or end is None:
        return None

    span = end - start
    if span <= timedelta(0):
        return None

    hours = span / _HOUR
    days = max(1, math.ceil(span / _DAY))
    return hours / days
