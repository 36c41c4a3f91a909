"""
Unit tests for recurrence arithmetic (pure, no DB).
"""
from datetime import datetime, timedelta

import pytest

from event_scheduler.domain.common.errors import InvalidIntervalError
from event_scheduler.domain.tasks.models import Interval
from event_scheduler.domain.tasks.recurrence import (
    advance,
    first_occurrence_after,
    next_occurrence,
    parse_interval,
)


def test_fixed_periods_preserve_time_of_day():
    base = datetime(2024, 3, 30, 7, 45, 12)
    assert next_occurrence(base, Interval.DAILY) == datetime(2024, 3, 31, 7, 45, 12)
    assert next_occurrence(base, Interval.WEEKLY) == datetime(2024, 4, 6, 7, 45, 12)
    assert next_occurrence(base, Interval.FORTNIGHTLY) == datetime(2024, 4, 13, 7, 45, 12)


def test_monthly_clamps_to_last_day_of_leap_february():
    assert next_occurrence(datetime(2024, 1, 31, 9, 0), Interval.MONTHLY) == datetime(2024, 2, 29, 9, 0)


def test_monthly_clamps_in_non_leap_year():
    assert next_occurrence(datetime(2023, 1, 31, 9, 0), Interval.MONTHLY) == datetime(2023, 2, 28, 9, 0)


def test_monthly_rolls_over_year_end():
    assert next_occurrence(datetime(2024, 12, 15, 18, 30), Interval.MONTHLY) == datetime(2025, 1, 15, 18, 30)


def test_yearly_from_leap_day_clamps_to_feb_28():
    assert next_occurrence(datetime(2024, 2, 29, 9, 0), Interval.YEARLY) == datetime(2025, 2, 28, 9, 0)


def test_yearly_regular_date():
    assert next_occurrence(datetime(2023, 2, 28, 9, 0), Interval.YEARLY) == datetime(2024, 2, 28, 9, 0)


def test_weekly_twice_is_fourteen_days():
    d = datetime(2024, 5, 1, 10, 0)
    twice = next_occurrence(next_occurrence(d, Interval.WEEKLY), Interval.WEEKLY)
    assert twice == d + timedelta(days=14)
    assert advance(d, Interval.WEEKLY, 2) == twice


def test_advance_monthly_counts_from_anchor_without_drift():
    # Jan 31 -> Feb 29 -> Mar 31 when computed from the anchor
    anchor = datetime(2024, 1, 31, 9, 0)
    assert advance(anchor, Interval.MONTHLY, 1) == datetime(2024, 2, 29, 9, 0)
    assert advance(anchor, Interval.MONTHLY, 2) == datetime(2024, 3, 31, 9, 0)
    assert advance(anchor, Interval.MONTHLY, 0) == anchor


@pytest.mark.parametrize("interval", [Interval.NONE, "hourly", None])
def test_invalid_interval_raises(interval):
    with pytest.raises(InvalidIntervalError):
        next_occurrence(datetime(2024, 1, 1, 9, 0), interval)


def test_parse_interval_accepts_text():
    assert parse_interval("Weekly") is Interval.WEEKLY
    assert parse_interval(Interval.DAILY) is Interval.DAILY
    assert parse_interval(None) is Interval.NONE
    with pytest.raises(InvalidIntervalError):
        parse_interval("biweekly")


def test_first_occurrence_after_fixed_period():
    anchor = datetime(2024, 6, 1, 9, 0)
    assert first_occurrence_after(anchor, Interval.DAILY, datetime(2024, 6, 3, 8, 0)) == datetime(2024, 6, 3, 9, 0)
    # exactly on an occurrence -> the next one
    assert first_occurrence_after(anchor, Interval.DAILY, datetime(2024, 6, 3, 9, 0)) == datetime(2024, 6, 4, 9, 0)
    # anchor still in the future
    assert first_occurrence_after(anchor, Interval.WEEKLY, datetime(2024, 5, 1)) == anchor


def test_first_occurrence_after_monthly():
    anchor = datetime(2024, 1, 31, 9, 0)
    assert first_occurrence_after(anchor, Interval.MONTHLY, datetime(2024, 3, 1)) == datetime(2024, 3, 31, 9, 0)
