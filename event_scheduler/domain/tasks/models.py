from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


class Interval(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    DONE = "Done"
    ARCHIVED = "Archived"
    CANCELLED = "Cancelled"


# Only ever appears in history rows; a deleted task has no row left to carry a status.
DELETED = "Deleted"


class ChangeType(str, Enum):
    CREATED = "Created"
    EDITED = "Edited"
    STATUS_CHANGE = "StatusChange"
    DELETED = "Deleted"


class Scope(str, Enum):
    SINGLE_OCCURRENCE = "single"
    THIS_AND_FUTURE = "future"


class NotificationKind(str, Enum):
    DUE = "Due"
    WARNING = "Warning"
    OVERDUE = "Overdue"
    RECURRING = "Recurring"


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    description: str
    due_date: datetime  # naive, local wall-clock
    recurring: bool
    interval: Interval
    status: TaskStatus
    series_id: Optional[str]  # == id for a series root, None when not recurring

    @property
    def is_pending(self) -> bool:
        return self.status is TaskStatus.PENDING


@dataclass(frozen=True)
class HistoryEntry:
    task_id: str
    old_status: Optional[str]  # None for Created
    new_status: str  # a TaskStatus value or DELETED
    change_date: datetime
    change_type: Optional[ChangeType] = None
    entry_id: Optional[int] = None  # assigned by the store


@dataclass(frozen=True)
class NewTask:
    title: str
    due_date: datetime
    description: str = ""
    recurring: bool = False
    interval: Interval = Interval.NONE


@dataclass(frozen=True)
class TaskChanges:
    """Fields left as None are unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    recurring: Optional[bool] = None
    interval: Optional[Interval] = None


@dataclass(frozen=True)
class RepeatRule:
    interval: Interval
    anchor: datetime


NotificationKey = Tuple[str, NotificationKind]


@dataclass(frozen=True)
class NotificationRequest:
    task_id: str
    kind: NotificationKind
    fire_at: datetime
    title: str
    body: str
    repeat: Optional[RepeatRule] = None

    @property
    def key(self) -> NotificationKey:
        return (self.task_id, self.kind)


@dataclass(frozen=True)
class HistoryView:
    entry: HistoryEntry
    task_exists: bool
    title: Optional[str]

    @property
    def label(self) -> str:
        return self.title if self.task_exists and self.title else "task no longer exists"


@dataclass
class LifecycleResult:
    """What one engine operation changed. `plans` maps task id -> plan applied to it."""

    tasks: list[Task] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    plans: Dict[str, frozenset[NotificationRequest]] = field(default_factory=dict)

    @property
    def task(self) -> Optional[Task]:
        return self.tasks[0] if self.tasks else None
