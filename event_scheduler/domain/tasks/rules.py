from __future__ import annotations

from event_scheduler.domain.common.errors import InvalidTransitionError, ValidationError
from event_scheduler.domain.tasks.models import Interval, Task, TaskStatus


def validate_title(title: str) -> None:
    if not title or not title.strip():
        raise ValidationError("Title is required.")
    if len(title.strip()) > 200:
        raise ValidationError("Title is too long (max 200 chars).")


def validate_description(description: str) -> None:
    if len(description or "") > 2000:
        raise ValidationError("Description is too long (max 2000 chars).")


def validate_recurrence(recurring: bool, interval: Interval) -> None:
    if recurring and interval is Interval.NONE:
        raise ValidationError("Recurring tasks need an interval.")
    if not recurring and interval is not Interval.NONE:
        raise ValidationError("Interval can only be set on a recurring task.")


def require_status(task: Task, allowed: set[TaskStatus], action: str) -> None:
    if task.status not in allowed:
        raise InvalidTransitionError(
            f"Cannot {action} a task that is {task.status.value}."
        )
