"""
Unit tests for reminder planning (pure, explicit `now`).
"""
from datetime import datetime, timedelta

import pytest

from event_scheduler.domain.tasks.models import Interval, NotificationKind, RepeatRule, Task, TaskStatus
from event_scheduler.domain.tasks.notifications import compute_plan, find, next_fire, plan_keys

NOW = datetime(2024, 6, 1, 12, 0)


def _task(due, status=TaskStatus.PENDING, interval=Interval.NONE, task_id="t1") -> Task:
    recurring = interval is not Interval.NONE
    return Task(
        id=task_id,
        title="Water plants",
        description="",
        due_date=due,
        recurring=recurring,
        interval=interval,
        status=status,
        series_id=task_id if recurring else None,
    )


def test_due_in_two_hours_gets_due_and_warning():
    plan = compute_plan(_task(NOW + timedelta(hours=2)), NOW)
    assert {(r.kind, r.fire_at) for r in plan} == {
        (NotificationKind.DUE, NOW + timedelta(hours=2)),
        (NotificationKind.WARNING, NOW + timedelta(hours=1, minutes=30)),
    }


def test_due_in_ten_minutes_skips_past_warning():
    plan = compute_plan(_task(NOW + timedelta(minutes=10)), NOW)
    assert {(r.kind, r.fire_at) for r in plan} == {(NotificationKind.DUE, NOW + timedelta(minutes=10))}


def test_warning_exactly_now_is_skipped():
    plan = compute_plan(_task(NOW + timedelta(minutes=30)), NOW)
    assert plan_keys(plan) == {("t1", NotificationKind.DUE)}


@pytest.mark.parametrize("status", [TaskStatus.DONE, TaskStatus.ARCHIVED, TaskStatus.CANCELLED])
@pytest.mark.parametrize("offset", [timedelta(hours=-5), timedelta(hours=5)])
def test_non_pending_task_has_empty_plan(status, offset):
    assert compute_plan(_task(NOW + offset, status=status, interval=Interval.DAILY), NOW) == frozenset()


def test_overdue_task_gets_single_overdue_now():
    plan = compute_plan(_task(NOW - timedelta(hours=3)), NOW)
    assert len(plan) == 1
    (req,) = plan
    assert req.kind is NotificationKind.OVERDUE
    assert req.fire_at == NOW
    assert req.repeat is None


def test_due_exactly_now_counts_as_overdue():
    plan = compute_plan(_task(NOW), NOW)
    assert plan_keys(plan) == {("t1", NotificationKind.OVERDUE)}


def test_recurring_task_adds_standing_reminder():
    due = NOW + timedelta(hours=2)
    plan = compute_plan(_task(due, interval=Interval.WEEKLY), NOW)
    assert plan_keys(plan) == {
        ("t1", NotificationKind.DUE),
        ("t1", NotificationKind.WARNING),
        ("t1", NotificationKind.RECURRING),
    }
    rec = find(plan, NotificationKind.RECURRING)
    assert rec.repeat == RepeatRule(interval=Interval.WEEKLY, anchor=due)
    assert rec.fire_at == due


def test_overdue_recurring_reminder_first_fires_at_next_slot():
    due = datetime(2024, 5, 30, 9, 0)
    plan = compute_plan(_task(due, interval=Interval.DAILY), NOW)
    assert plan_keys(plan) == {("t1", NotificationKind.OVERDUE), ("t1", NotificationKind.RECURRING)}
    assert find(plan, NotificationKind.RECURRING).fire_at == datetime(2024, 6, 2, 9, 0)


def test_custom_warning_lead():
    plan = compute_plan(_task(NOW + timedelta(hours=2)), NOW, warning_lead=timedelta(hours=1))
    assert find(plan, NotificationKind.WARNING).fire_at == NOW + timedelta(hours=1)


def test_zero_warning_lead_means_no_warning():
    plan = compute_plan(_task(NOW + timedelta(hours=1)), NOW, warning_lead=timedelta(0))
    assert plan_keys(plan) == {("t1", NotificationKind.DUE)}


def test_next_fire_monthly_keeps_day_of_month():
    rule = RepeatRule(interval=Interval.MONTHLY, anchor=datetime(2024, 1, 15, 8, 30))
    assert next_fire(rule, datetime(2024, 4, 15, 8, 30)) == datetime(2024, 5, 15, 8, 30)


def test_request_key_is_task_and_kind():
    plan = compute_plan(_task(NOW + timedelta(hours=2), task_id="abc"), NOW)
    assert find(plan, NotificationKind.DUE).key == ("abc", NotificationKind.DUE)
