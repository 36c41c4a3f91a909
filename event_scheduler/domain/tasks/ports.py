from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from event_scheduler.domain.tasks.models import (
    HistoryEntry,
    NotificationRequest,
    Task,
    TaskStatus,
)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...


class IdGenerator(ABC):
    @abstractmethod
    def new_id(self) -> str: ...


class TaskStore(ABC):
    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Task]: ...

    @abstractmethod
    async def get_series(self, series_id: str) -> Sequence[Task]:
        """Occurrences of the series ordered by due_date ascending."""

    @abstractmethod
    async def save_task(self, task: Task) -> None: ...

    @abstractmethod
    async def delete_task(self, task_id: str) -> None: ...

    @abstractmethod
    async def append_history(self, entry: HistoryEntry) -> None: ...

    @abstractmethod
    async def list_history(self, task_id: Optional[str] = None) -> Sequence[HistoryEntry]:
        """Newest first."""

    @abstractmethod
    async def list_tasks(self, status: Optional[TaskStatus] = None) -> Sequence[Task]: ...


class NotificationScheduler(ABC):
    @abstractmethod
    async def apply(self, task_id: str, plan: frozenset[NotificationRequest]) -> None:
        """Make `plan` the complete set of reminders for `task_id`."""

    @abstractmethod
    async def cancel_all(self, task_id: str) -> None: ...
