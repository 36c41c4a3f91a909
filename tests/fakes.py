# tests/fakes.py

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from event_scheduler.domain.common.errors import NotificationSchedulingError
from event_scheduler.domain.tasks.models import HistoryEntry, NotificationRequest, Task, TaskStatus
from event_scheduler.domain.tasks.ports import Clock, IdGenerator, NotificationScheduler, TaskStore


class FakeClock(Clock):
    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class SequentialIds(IdGenerator):
    """t1, t2, ... so tests can name tasks up front."""

    def __init__(self, prefix: str = "t") -> None:
        self._prefix = prefix
        self._n = 0

    def new_id(self) -> str:
        self._n += 1
        return f"{self._prefix}{self._n}"


class InMemoryTaskStore(TaskStore):
    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}
        self.history: list[HistoryEntry] = []

    async def get_task(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    async def get_series(self, series_id: str):
        return sorted(
            (t for t in self.tasks.values() if t.series_id == series_id),
            key=lambda t: t.due_date,
        )

    async def save_task(self, task: Task) -> None:
        self.tasks[task.id] = task

    async def delete_task(self, task_id: str) -> None:
        self.tasks.pop(task_id, None)

    async def append_history(self, entry: HistoryEntry) -> None:
        self.history.append(entry)

    async def list_history(self, task_id: Optional[str] = None):
        rows = [e for e in self.history if task_id is None or e.task_id == task_id]
        return list(reversed(rows))

    async def list_tasks(self, status: Optional[TaskStatus] = None):
        rows = [t for t in self.tasks.values() if status is None or t.status is status]
        return sorted(rows, key=lambda t: t.due_date)


class RecordingScheduler(NotificationScheduler):
    """
    Keeps the live reminder set per task, like the real adapter, plus a call log.
    Set `fail = True` to make every call raise NotificationSchedulingError.
    """

    def __init__(self) -> None:
        self.active: dict[str, frozenset[NotificationRequest]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def apply(self, task_id: str, plan: frozenset[NotificationRequest]) -> None:
        self.calls.append(("apply", task_id))
        if self.fail:
            raise NotificationSchedulingError("notification service unavailable")
        if plan:
            self.active[task_id] = plan
        else:
            self.active.pop(task_id, None)

    async def cancel_all(self, task_id: str) -> None:
        self.calls.append(("cancel_all", task_id))
        if self.fail:
            raise NotificationSchedulingError("notification service unavailable")
        self.active.pop(task_id, None)

    def kinds(self, task_id: str) -> set[str]:
        return {r.kind.value for r in self.active.get(task_id, frozenset())}


class FakeBot:
    """Stands in for aiogram.Bot in sender tests."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []

    async def send_message(self, chat_id: int, text: str, **kwargs) -> None:
        self.sent.append((chat_id, text))
