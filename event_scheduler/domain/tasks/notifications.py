"""
Reminder planning.

compute_plan() returns the full set of reminders a task should have right now.
It never reads the clock: callers pass `now`. A recomputed plan replaces the
previous one for the same task key-by-key.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from event_scheduler.domain.tasks.models import (
    NotificationKind,
    NotificationRequest,
    RepeatRule,
    Task,
)
from event_scheduler.domain.tasks.recurrence import first_occurrence_after

DEFAULT_WARNING_LEAD = timedelta(minutes=30)

EMPTY_PLAN: frozenset[NotificationRequest] = frozenset()


def _fmt(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M")


def due_request(task: Task) -> NotificationRequest:
    return NotificationRequest(
        task_id=task.id,
        kind=NotificationKind.DUE,
        fire_at=task.due_date,
        title="Task due",
        body=f"{task.title} is due now.",
    )


def warning_request(task: Task, lead: timedelta) -> NotificationRequest:
    minutes = int(lead.total_seconds() // 60)
    return NotificationRequest(
        task_id=task.id,
        kind=NotificationKind.WARNING,
        fire_at=task.due_date - lead,
        title="Upcoming task",
        body=f"{task.title} is due in {minutes} minutes ({_fmt(task.due_date)}).",
    )


def overdue_request(task: Task, now: datetime) -> NotificationRequest:
    return NotificationRequest(
        task_id=task.id,
        kind=NotificationKind.OVERDUE,
        fire_at=now,
        title="Task overdue",
        body=f"{task.title} was due {_fmt(task.due_date)}.",
    )


def recurring_request(task: Task, now: datetime) -> NotificationRequest:
    rule = RepeatRule(interval=task.interval, anchor=task.due_date)
    return NotificationRequest(
        task_id=task.id,
        kind=NotificationKind.RECURRING,
        fire_at=task.due_date if task.due_date > now else next_fire(rule, now),
        title="Recurring task reminder",
        body=f"{task.title} is due! ({task.interval.value})",
        repeat=rule,
    )


def compute_plan(
    task: Task,
    now: datetime,
    warning_lead: timedelta = DEFAULT_WARNING_LEAD,
) -> frozenset[NotificationRequest]:
    if not task.is_pending:
        return EMPTY_PLAN

    plan: list[NotificationRequest] = []
    due = task.due_date
    if due > now:
        plan.append(due_request(task))
        # a zero lead switches warnings off
        if warning_lead > timedelta(0) and due - warning_lead > now:
            plan.append(warning_request(task, warning_lead))
    else:
        plan.append(overdue_request(task, now))

    if task.recurring:
        plan.append(recurring_request(task, now))

    return frozenset(plan)


def plan_keys(plan: frozenset[NotificationRequest]) -> set:
    return {req.key for req in plan}


def next_fire(rule: RepeatRule, after: datetime) -> datetime:
    """Next instant a repeating reminder fires, strictly after `after`."""
    return first_occurrence_after(rule.anchor, rule.interval, after)


def find(plan: frozenset[NotificationRequest], kind: NotificationKind) -> Optional[NotificationRequest]:
    for req in plan:
        if req.kind is kind:
            return req
    return None
