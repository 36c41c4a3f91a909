from __future__ import annotations

from typing import Optional, Sequence

from event_scheduler.domain.common.errors import StoreDataError
from event_scheduler.domain.common.time import from_iso, to_iso
from event_scheduler.domain.tasks.models import (
    DELETED,
    ChangeType,
    HistoryEntry,
    Interval,
    Task,
    TaskStatus,
)
from event_scheduler.domain.tasks.ports import TaskStore
from event_scheduler.infra.db.connection import Database

# Older app builds wrote "Completed" for finished tasks.
_STATUS_ALIASES = {"Completed": TaskStatus.DONE}

_HISTORY_STATUSES = {s.value for s in TaskStatus} | {DELETED}


def _parse_status(raw) -> TaskStatus:
    if raw in _STATUS_ALIASES:
        return _STATUS_ALIASES[raw]
    try:
        return TaskStatus(raw)
    except ValueError:
        raise StoreDataError(f"Unknown task status in store: {raw!r}") from None


def _parse_history_status(raw) -> Optional[str]:
    if raw is None:
        return None
    if raw in _STATUS_ALIASES:
        return _STATUS_ALIASES[raw].value
    if raw not in _HISTORY_STATUSES:
        raise StoreDataError(f"Unknown history status in store: {raw!r}")
    return raw


class TasksSqliteRepo(TaskStore):
    """tasks + task_history tables. History is insert-only."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_task(self, task_id: str) -> Optional[Task]:
        row = await self._db.fetchone("SELECT * FROM tasks WHERE id = ?;", (task_id,))
        return self._row_to_task(row) if row else None

    async def get_series(self, series_id: str) -> Sequence[Task]:
        rows = await self._db.fetchall(
            """
            SELECT *
            FROM tasks
            WHERE series_id = ?
            ORDER BY due_date ASC, id ASC;
            """,
            (series_id,),
        )
        return [self._row_to_task(r) for r in rows]

    async def save_task(self, task: Task) -> None:
        await self._db.execute(
            """
            INSERT INTO tasks(id, title, description, due_date, recurring, interval, status, series_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              title = excluded.title,
              description = excluded.description,
              due_date = excluded.due_date,
              recurring = excluded.recurring,
              interval = excluded.interval,
              status = excluded.status,
              series_id = excluded.series_id;
            """,
            (
                task.id,
                task.title,
                task.description,
                to_iso(task.due_date),
                1 if task.recurring else 0,
                task.interval.value,
                task.status.value,
                task.series_id,
            ),
        )

    async def delete_task(self, task_id: str) -> None:
        await self._db.execute("DELETE FROM tasks WHERE id = ?;", (task_id,))

    async def append_history(self, entry: HistoryEntry) -> None:
        await self._db.execute(
            """
            INSERT INTO task_history(task_id, old_status, new_status, change_date, change_type)
            VALUES (?, ?, ?, ?, ?);
            """,
            (
                entry.task_id,
                entry.old_status,
                entry.new_status,
                to_iso(entry.change_date),
                entry.change_type.value if entry.change_type else None,
            ),
        )

    async def list_history(self, task_id: Optional[str] = None) -> Sequence[HistoryEntry]:
        if task_id is None:
            rows = await self._db.fetchall("SELECT * FROM task_history ORDER BY change_date DESC, id DESC;")
        else:
            rows = await self._db.fetchall(
                "SELECT * FROM task_history WHERE task_id = ? ORDER BY change_date DESC, id DESC;",
                (task_id,),
            )
        return [self._row_to_history(r) for r in rows]

    async def list_tasks(self, status: Optional[TaskStatus] = None) -> Sequence[Task]:
        if status is None:
            rows = await self._db.fetchall("SELECT * FROM tasks ORDER BY due_date ASC, id ASC;")
        else:
            statuses = [status.value] + [alias for alias, s in _STATUS_ALIASES.items() if s is status]
            marks = ", ".join("?" for _ in statuses)
            rows = await self._db.fetchall(
                f"SELECT * FROM tasks WHERE status IN ({marks}) ORDER BY due_date ASC, id ASC;",
                statuses,
            )
        return [self._row_to_task(r) for r in rows]

    def _row_to_task(self, row) -> Task:
        try:
            interval = Interval(row["interval"] or "none")
        except ValueError:
            raise StoreDataError(f"Unknown interval for task {row['id']}: {row['interval']!r}") from None

        recurring_raw = row["recurring"]
        if recurring_raw not in (0, 1):
            raise StoreDataError(f"Malformed recurring flag for task {row['id']}: {recurring_raw!r}")
        recurring = bool(recurring_raw)
        if recurring != (interval is not Interval.NONE):
            raise StoreDataError(f"Task {row['id']} has recurring={recurring} but interval={interval.value}")

        if not row["title"]:
            raise StoreDataError(f"Task {row['id']} has an empty title")
        try:
            due_date = from_iso(row["due_date"])
        except (TypeError, ValueError):
            raise StoreDataError(f"Malformed due date for task {row['id']}: {row['due_date']!r}") from None

        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            due_date=due_date,
            recurring=recurring,
            interval=interval,
            status=_parse_status(row["status"]),
            series_id=row["series_id"] if recurring else None,
        )

    def _row_to_history(self, row) -> HistoryEntry:
        raw_type = row["change_type"]
        try:
            change_type = ChangeType(raw_type) if raw_type else None
        except ValueError:
            raise StoreDataError(f"Unknown history change type: {raw_type!r}") from None
        return HistoryEntry(
            task_id=row["task_id"],
            old_status=_parse_history_status(row["old_status"]),
            new_status=_parse_history_status(row["new_status"]),
            change_date=from_iso(row["change_date"]),
            change_type=change_type,
            entry_id=int(row["id"]),
        )
