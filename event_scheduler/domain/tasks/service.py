from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from event_scheduler.domain.common.errors import (
    InvalidIntervalError,
    NotFoundError,
    NotificationSchedulingError,
    ValidationError,
)
from event_scheduler.domain.common.time import ensure_naive
from event_scheduler.domain.tasks.models import (
    DELETED,
    ChangeType,
    HistoryEntry,
    HistoryView,
    Interval,
    LifecycleResult,
    NewTask,
    NotificationKind,
    NotificationRequest,
    Scope,
    Task,
    TaskChanges,
    TaskStatus,
)
from event_scheduler.domain.tasks.notifications import (
    DEFAULT_WARNING_LEAD,
    EMPTY_PLAN,
    compute_plan,
)
from event_scheduler.domain.tasks.ports import Clock, IdGenerator, NotificationScheduler, TaskStore
from event_scheduler.domain.tasks.recurrence import advance, next_occurrence, parse_interval
from event_scheduler.domain.tasks.rules import (
    require_status,
    validate_description,
    validate_recurrence,
    validate_title,
)

logger = logging.getLogger(__name__)

_ARCHIVABLE = {TaskStatus.PENDING, TaskStatus.DONE, TaskStatus.CANCELLED}
_RESTORABLE = {TaskStatus.ARCHIVED, TaskStatus.DONE}


def _user_interval(value) -> Interval:
    try:
        return parse_interval(value)
    except InvalidIntervalError as e:
        raise ValidationError(str(e)) from None


def _user_due_date(value: datetime) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError("Due date must be a date and time.")
    try:
        return ensure_naive(value)
    except ValueError as e:
        raise ValidationError(str(e)) from None


class TaskLifecycleEngine:
    """
    Task lifecycle state machine. No aiogram. No sqlite.

    Every mutating call reads from the store, validates, writes task rows and
    history, then pushes the recomputed reminder plan of each affected task to
    the notification scheduler. Scheduler failures are logged, never raised:
    the task state is authoritative.

    A mutation always pushes the full recomputed plan, Overdue included. The
    periodic reevaluate() pass only reports a task once per day: it keeps an
    in-memory ledger of (task id, day) pairs already notified, filled by every
    plan that carried an Overdue reminder. Moving a task's due date or clearing
    its plan drops its entries.
    """

    def __init__(
        self,
        store: TaskStore,
        scheduler: NotificationScheduler,
        clock: Clock,
        ids: IdGenerator,
        warning_lead: timedelta = DEFAULT_WARNING_LEAD,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._clock = clock
        self._ids = ids
        self._warning_lead = warning_lead
        self._overdue_notified: Set[Tuple[str, date]] = set()

    # ----- commands -----

    async def create(self, new: NewTask) -> LifecycleResult:
        validate_title(new.title)
        validate_description(new.description)
        interval = _user_interval(new.interval)
        validate_recurrence(new.recurring, interval)
        due = _user_due_date(new.due_date)

        now = self._clock.now()
        task_id = self._ids.new_id()
        task = Task(
            id=task_id,
            title=new.title.strip(),
            description=new.description or "",
            due_date=due,
            recurring=new.recurring,
            interval=interval,
            status=TaskStatus.PENDING,
            series_id=task_id if new.recurring else None,
        )

        result = LifecycleResult()
        await self._store.save_task(task)
        result.tasks.append(task)
        await self._record(result, task.id, None, TaskStatus.PENDING.value, ChangeType.CREATED, now)
        await self._apply_plan(result, task, now)

        logger.info("Task created: id=%s recurring=%s interval=%s", task.id, task.recurring, task.interval.value)
        return result

    async def edit(
        self,
        task_id: str,
        changes: TaskChanges,
        scope: Scope = Scope.SINGLE_OCCURRENCE,
    ) -> LifecycleResult:
        target = await self._require(task_id)

        if changes.title is not None:
            validate_title(changes.title)
        if changes.description is not None:
            validate_description(changes.description)
        new_due = _user_due_date(changes.due_date) if changes.due_date is not None else None

        recurring = target.recurring if changes.recurring is None else changes.recurring
        if changes.interval is not None:
            interval = _user_interval(changes.interval)
        elif not recurring:
            interval = Interval.NONE
        else:
            interval = target.interval
        validate_recurrence(recurring, interval)

        now = self._clock.now()
        if scope is Scope.THIS_AND_FUTURE and target.series_id is not None:
            result = await self._edit_series(target, changes, new_due, recurring, interval, now)
        else:
            result = await self._edit_single(target, changes, new_due, recurring, interval, now)

        logger.info("Task edited: id=%s scope=%s affected=%d", task_id, scope.value, len(result.tasks))
        return result

    async def complete(self, task_id: str) -> LifecycleResult:
        task = await self._require(task_id)
        require_status(task, {TaskStatus.PENDING}, "complete")

        now = self._clock.now()
        result = LifecycleResult()
        done = replace(task, status=TaskStatus.DONE)
        await self._store.save_task(done)
        result.tasks.append(done)
        await self._record(result, done.id, task.status.value, done.status.value, ChangeType.STATUS_CHANGE, now)
        await self._clear_plan(result, done.id)

        if task.recurring:
            # InvalidIntervalError here means a corrupt row slipped past the store; let it surface.
            successor = Task(
                id=self._ids.new_id(),
                title=task.title,
                description=task.description,
                due_date=next_occurrence(task.due_date, task.interval),
                recurring=True,
                interval=task.interval,
                status=TaskStatus.PENDING,
                series_id=task.series_id or task.id,
            )
            await self._store.save_task(successor)
            result.tasks.append(successor)
            await self._record(result, successor.id, None, TaskStatus.PENDING.value, ChangeType.CREATED, now)
            await self._apply_plan(result, successor, now)
            logger.info("Next occurrence created: id=%s series=%s due=%s", successor.id, successor.series_id, successor.due_date)

        logger.info("Task completed: id=%s", task_id)
        return result

    async def archive(self, task_id: str, scope: Scope = Scope.SINGLE_OCCURRENCE) -> LifecycleResult:
        target = await self._require(task_id)
        require_status(target, _ARCHIVABLE, "archive")

        now = self._clock.now()
        result = LifecycleResult()
        for task in await self._scope_targets(target, scope):
            if task.status not in _ARCHIVABLE:
                continue
            archived = replace(task, status=TaskStatus.ARCHIVED)
            await self._store.save_task(archived)
            result.tasks.append(archived)
            await self._record(result, task.id, task.status.value, archived.status.value, ChangeType.STATUS_CHANGE, now)
            await self._clear_plan(result, task.id)

        logger.info("Tasks archived: target=%s scope=%s count=%d", task_id, scope.value, len(result.tasks))
        return result

    async def cancel(self, task_id: str) -> LifecycleResult:
        task = await self._require(task_id)
        require_status(task, {TaskStatus.PENDING}, "cancel")

        now = self._clock.now()
        result = LifecycleResult()
        cancelled = replace(task, status=TaskStatus.CANCELLED)
        await self._store.save_task(cancelled)
        result.tasks.append(cancelled)
        await self._record(result, task.id, task.status.value, cancelled.status.value, ChangeType.STATUS_CHANGE, now)
        await self._clear_plan(result, task.id)

        logger.info("Task cancelled: id=%s", task_id)
        return result

    async def delete(self, task_id: str, scope: Scope = Scope.SINGLE_OCCURRENCE) -> LifecycleResult:
        target = await self._require(task_id)

        now = self._clock.now()
        result = LifecycleResult()
        for task in await self._scope_targets(target, scope):
            await self._store.delete_task(task.id)
            result.removed.append(task.id)
            await self._record(result, task.id, task.status.value, DELETED, ChangeType.DELETED, now)
            await self._clear_plan(result, task.id)

        logger.info("Tasks deleted: target=%s scope=%s count=%d", task_id, scope.value, len(result.removed))
        return result

    async def restore(self, task_id: str) -> LifecycleResult:
        task = await self._require(task_id)
        require_status(task, _RESTORABLE, "restore")

        now = self._clock.now()
        result = LifecycleResult()
        restored = replace(task, status=TaskStatus.PENDING)
        await self._store.save_task(restored)
        result.tasks.append(restored)
        await self._record(result, task.id, task.status.value, restored.status.value, ChangeType.STATUS_CHANGE, now)
        await self._apply_plan(result, restored, now)

        logger.info("Task restored: id=%s", task_id)
        return result

    async def reevaluate(self, now: Optional[datetime] = None) -> List[NotificationRequest]:
        """Issue Overdue reminders for pending tasks whose due date has passed, once per task per day."""
        now = now or self._clock.now()
        today = now.date()
        self._overdue_notified = {key for key in self._overdue_notified if key[1] >= today}

        issued: List[NotificationRequest] = []
        for task in await self._store.list_tasks(TaskStatus.PENDING):
            if task.due_date > now or (task.id, today) in self._overdue_notified:
                continue
            result = LifecycleResult()
            await self._apply_plan(result, task, now)
            issued.extend(r for r in result.plans[task.id] if r.kind is NotificationKind.OVERDUE)

        if issued:
            logger.info("Overdue reminders issued: %d", len(issued))
        return issued

    async def resync(self, now: Optional[datetime] = None) -> int:
        """Push a fresh plan for every pending task. Used on startup."""
        now = now or self._clock.now()
        tasks = await self._store.list_tasks(TaskStatus.PENDING)
        result = LifecycleResult()
        for task in tasks:
            await self._apply_plan(result, task, now)
        logger.info("Reminder plans resynced for %d pending tasks", len(tasks))
        return len(tasks)

    # ----- queries -----

    async def get(self, task_id: str) -> Task:
        return await self._require(task_id)

    async def list_tasks(self, status: Optional[TaskStatus] = None) -> Sequence[Task]:
        return await self._store.list_tasks(status)

    async def tasks_by_day(self, status: Optional[TaskStatus] = None) -> Dict[date, List[Task]]:
        days: Dict[date, List[Task]] = defaultdict(list)
        for task in sorted(await self._store.list_tasks(status), key=lambda t: t.due_date):
            days[task.due_date.date()].append(task)
        return dict(days)

    async def history(self, task_id: Optional[str] = None) -> List[HistoryView]:
        entries = await self._store.list_history(task_id)
        known: Dict[str, Optional[Task]] = {}
        out: List[HistoryView] = []
        for entry in entries:
            if entry.task_id not in known:
                known[entry.task_id] = await self._store.get_task(entry.task_id)
            task = known[entry.task_id]
            out.append(HistoryView(entry=entry, task_exists=task is not None, title=task.title if task else None))
        return out

    # ----- internals -----

    async def _require(self, task_id: str) -> Task:
        task = await self._store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found.")
        return task

    async def _future_siblings(self, target: Task) -> List[Task]:
        """Target plus every occurrence of its series due at or after it, target first."""
        series = await self._store.get_series(target.series_id)
        later = [t for t in series if t.id != target.id and t.due_date >= target.due_date]
        return [target] + sorted(later, key=lambda t: t.due_date)

    async def _scope_targets(self, target: Task, scope: Scope) -> List[Task]:
        if scope is Scope.THIS_AND_FUTURE and target.series_id is not None:
            return await self._future_siblings(target)
        return [target]

    async def _edit_single(
        self,
        target: Task,
        changes: TaskChanges,
        new_due: Optional[datetime],
        recurring: bool,
        interval: Interval,
        now: datetime,
    ) -> LifecycleResult:
        if not recurring:
            series_id = None
        elif target.series_id is None or interval is not target.interval:
            # new or detached series: siblings keep the old one untouched
            series_id = self._ids.new_id()
        else:
            series_id = target.series_id

        updated = replace(
            target,
            title=changes.title.strip() if changes.title is not None else target.title,
            description=changes.description if changes.description is not None else target.description,
            due_date=new_due if new_due is not None else target.due_date,
            recurring=recurring,
            interval=interval,
            series_id=series_id,
        )
        result = LifecycleResult()
        await self._save_edited(result, target, updated, now)
        return result

    async def _edit_series(
        self,
        target: Task,
        changes: TaskChanges,
        new_due: Optional[datetime],
        recurring: bool,
        interval: Interval,
        now: datetime,
    ) -> LifecycleResult:
        base = new_due if new_due is not None else target.due_date
        result = LifecycleResult()
        for k, task in enumerate(await self._future_siblings(target)):
            if recurring:
                due = advance(base, interval, k)
            else:
                due = base if k == 0 else task.due_date
            updated = replace(
                task,
                title=changes.title.strip() if changes.title is not None else task.title,
                description=changes.description if changes.description is not None else task.description,
                due_date=due,
                recurring=recurring,
                interval=interval,
                series_id=task.series_id if recurring else None,
            )
            await self._save_edited(result, task, updated, now)
        return result

    async def _save_edited(self, result: LifecycleResult, before: Task, after: Task, now: datetime) -> None:
        await self._store.save_task(after)
        result.tasks.append(after)
        await self._record(result, after.id, before.status.value, after.status.value, ChangeType.EDITED, now)
        if after.due_date != before.due_date:
            # rescheduled: the next time it goes overdue is a fresh detection
            self._forget_overdue(after.id)
        await self._apply_plan(result, after, now)

    async def _record(
        self,
        result: LifecycleResult,
        task_id: str,
        old_status: Optional[str],
        new_status: str,
        change_type: ChangeType,
        now: datetime,
    ) -> None:
        entry = HistoryEntry(
            task_id=task_id,
            old_status=old_status,
            new_status=new_status,
            change_date=now,
            change_type=change_type,
        )
        await self._store.append_history(entry)
        result.history.append(entry)

    async def _apply_plan(self, result: LifecycleResult, task: Task, now: datetime) -> None:
        plan = compute_plan(task, now, self._warning_lead)
        if any(r.kind is NotificationKind.OVERDUE for r in plan):
            self._overdue_notified.add((task.id, now.date()))

        result.plans[task.id] = plan
        try:
            await self._scheduler.apply(task.id, plan)
        except NotificationSchedulingError as e:
            logger.error(f"Reminder scheduling failed: task_id={task.id}, error={e}", exc_info=True)

    async def _clear_plan(self, result: LifecycleResult, task_id: str) -> None:
        result.plans[task_id] = EMPTY_PLAN
        self._forget_overdue(task_id)
        try:
            await self._scheduler.cancel_all(task_id)
        except NotificationSchedulingError as e:
            logger.error(f"Reminder cancellation failed: task_id={task_id}, error={e}", exc_info=True)

    def _forget_overdue(self, task_id: str) -> None:
        self._overdue_notified = {key for key in self._overdue_notified if key[0] != task_id}

    def overdue_notified(self) -> Iterable[Tuple[str, date]]:
        return frozenset(self._overdue_notified)
