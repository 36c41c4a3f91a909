"""
Recurrence arithmetic for repeating tasks.

Pure functions, no I/O. Calendar-based periods (monthly, yearly) are computed
from the anchor date, so repeated application never accumulates clamping
drift: two monthly steps from Jan 31 give Mar 31, not Mar 29.
"""
from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from event_scheduler.domain.common.errors import InvalidIntervalError
from event_scheduler.domain.tasks.models import Interval

_FIXED_DAYS = {
    Interval.DAILY: 1,
    Interval.WEEKLY: 7,
    Interval.FORTNIGHTLY: 14,
}

_MONTHS = {
    Interval.MONTHLY: 1,
    Interval.YEARLY: 12,
}


def parse_interval(value) -> Interval:
    if isinstance(value, Interval):
        return value
    try:
        return Interval(str(value or "none").strip().lower())
    except ValueError:
        raise InvalidIntervalError(f"Unknown interval: {value!r}") from None


def _add_months(date: datetime, months: int) -> datetime:
    month_index = date.month - 1 + months
    year = date.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date.replace(year=year, month=month, day=min(date.day, last_day))


def advance(date: datetime, interval: Interval, times: int = 1) -> datetime:
    """
    Move `date` forward by `times` periods of `interval`.

    Time-of-day is preserved. Day-of-month overflow clamps to the target
    month's last day (Feb 29 -> Feb 28 on non-leap years).
    """
    if times < 0:
        raise ValueError("times must be >= 0")
    if not isinstance(interval, Interval):
        interval = parse_interval(interval)

    if interval in _FIXED_DAYS:
        return date + timedelta(days=_FIXED_DAYS[interval] * times)
    if interval in _MONTHS:
        return _add_months(date, _MONTHS[interval] * times)
    raise InvalidIntervalError(f"Cannot compute next occurrence for interval {interval.value!r}")


def next_occurrence(date: datetime, interval: Interval) -> datetime:
    return advance(date, interval, 1)


def first_occurrence_after(anchor: datetime, interval: Interval, after: datetime) -> datetime:
    """First occurrence of the series anchored at `anchor` strictly after `after`."""
    if anchor > after:
        return anchor
    # Fixed periods can jump straight to the right step.
    if interval in _FIXED_DAYS:
        period = timedelta(days=_FIXED_DAYS[interval])
        steps = (after - anchor) // period + 1
        return anchor + period * steps

    steps = 1
    candidate = advance(anchor, interval, steps)
    while candidate <= after:
        steps += 1
        candidate = advance(anchor, interval, steps)
    return candidate
