from __future__ import annotations

import logging

import aiosqlite

from event_scheduler.domain.common.errors import NotificationSchedulingError
from event_scheduler.domain.common.time import to_iso
from event_scheduler.domain.tasks.models import NotificationRequest
from event_scheduler.domain.tasks.ports import Clock, NotificationScheduler
from event_scheduler.infra.db.repo.reminders_sqlite import RemindersRepo

logger = logging.getLogger(__name__)


class SqliteNotificationScheduler(NotificationScheduler):
    """
    Registers reminders as rows in the reminders table; ReminderLoop delivers them.

    apply() swaps the task's whole reminder set in one transaction, so a stale
    (task, kind) row never survives a recompute.
    """

    def __init__(self, repo: RemindersRepo, clock: Clock) -> None:
        self._repo = repo
        self._clock = clock

    async def apply(self, task_id: str, plan: frozenset[NotificationRequest]) -> None:
        stray = [req for req in plan if req.task_id != task_id]
        if stray:
            raise NotificationSchedulingError(f"Plan for task {task_id} contains requests for other tasks")
        ordered = sorted(plan, key=lambda r: (r.fire_at, r.kind.value))
        try:
            await self._repo.replace_for_task(task_id, ordered, to_iso(self._clock.now()))
        except aiosqlite.Error as e:
            raise NotificationSchedulingError(f"Could not schedule reminders for task {task_id}: {e}") from e
        logger.debug("Reminders applied: task_id=%s kinds=%s", task_id, [r.kind.value for r in ordered])

    async def cancel_all(self, task_id: str) -> None:
        try:
            removed = await self._repo.delete_for_task(task_id)
        except aiosqlite.Error as e:
            raise NotificationSchedulingError(f"Could not cancel reminders for task {task_id}: {e}") from e
        logger.debug("Reminders cancelled: task_id=%s count=%s", task_id, removed)


class MutedNotificationScheduler(NotificationScheduler):
    """Used when notifications are switched off in settings: plans only ever cancel."""

    def __init__(self, inner: NotificationScheduler) -> None:
        self._inner = inner

    async def apply(self, task_id: str, plan: frozenset[NotificationRequest]) -> None:
        await self._inner.cancel_all(task_id)

    async def cancel_all(self, task_id: str) -> None:
        await self._inner.cancel_all(task_id)
