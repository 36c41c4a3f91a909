# event_scheduler/infra/db/repo/reminders_sqlite.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from event_scheduler.domain.common.time import from_iso, to_iso
from event_scheduler.domain.tasks.models import (
    Interval,
    NotificationKind,
    NotificationRequest,
    RepeatRule,
)
from event_scheduler.infra.db.connection import Database


def reminder_id(task_id: str, kind: NotificationKind) -> str:
    # platform-facing string id; the domain keys reminders by (task_id, kind)
    return f"{task_id}-{kind.value}"


@dataclass(frozen=True)
class Reminder:
    reminder_id: str
    task_id: str
    kind: NotificationKind
    fire_at: datetime
    repeat: Optional[RepeatRule]
    title: str
    body: str
    status: str
    run_count: int
    last_run_at: Optional[str]
    last_error: Optional[str]
    updated_at: str


class RemindersRepo:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def replace_for_task(self, task_id: str, plan: Sequence[NotificationRequest], now_iso: str) -> None:
        statements = [("DELETE FROM reminders WHERE task_id = ?;", (task_id,))]
        for req in plan:
            statements.append(
                (
                    """
                    INSERT INTO reminders(
                      reminder_id, task_id, kind, fire_at,
                      repeat_interval, repeat_anchor, title, body,
                      status, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?);
                    """,
                    (
                        reminder_id(req.task_id, req.kind),
                        req.task_id,
                        req.kind.value,
                        to_iso(req.fire_at),
                        req.repeat.interval.value if req.repeat else None,
                        to_iso(req.repeat.anchor) if req.repeat else None,
                        req.title,
                        req.body,
                        now_iso,
                    ),
                )
            )
        await self._db.execute_batch(statements)

    async def delete_for_task(self, task_id: str) -> int:
        return await self._db.execute("DELETE FROM reminders WHERE task_id = ?;", (task_id,))

    async def list_for_task(self, task_id: str) -> Sequence[Reminder]:
        rows = await self._db.fetchall(
            "SELECT * FROM reminders WHERE task_id = ? ORDER BY fire_at ASC, kind ASC;",
            (task_id,),
        )
        return [self._row_to_reminder(r) for r in rows]

    async def get(self, rid: str) -> Optional[Reminder]:
        row = await self._db.fetchone("SELECT * FROM reminders WHERE reminder_id = ?;", (rid,))
        return self._row_to_reminder(row) if row else None

    async def list_due(self, now: datetime, limit: int = 25) -> Sequence[Reminder]:
        rows = await self._db.fetchall(
            """
            SELECT *
            FROM reminders
            WHERE status = 'pending' AND fire_at <= ?
            ORDER BY fire_at ASC
            LIMIT ?;
            """,
            (to_iso(now), limit),
        )
        return [self._row_to_reminder(r) for r in rows]

    async def mark_sent(self, rid: str, next_fire_at: Optional[datetime], now_iso: str) -> None:
        # next_fire_at None => one-shot reminder is finished
        if next_fire_at is None:
            await self._db.execute(
                """
                UPDATE reminders
                SET status='sent',
                    last_run_at=?,
                    run_count=run_count+1,
                    last_error=NULL,
                    updated_at=?
                WHERE reminder_id=?;
                """,
                (now_iso, now_iso, rid),
            )
            return

        await self._db.execute(
            """
            UPDATE reminders
            SET fire_at=?,
                last_run_at=?,
                run_count=run_count+1,
                last_error=NULL,
                updated_at=?
            WHERE reminder_id=?;
            """,
            (to_iso(next_fire_at), now_iso, now_iso, rid),
        )

    async def mark_failed(self, rid: str, error: str, now_iso: str) -> None:
        await self._db.execute(
            """
            UPDATE reminders
            SET status='failed',
                last_run_at=?,
                run_count=run_count+1,
                last_error=?,
                updated_at=?
            WHERE reminder_id=?;
            """,
            (now_iso, error[:2000], now_iso, rid),
        )

    def _row_to_reminder(self, row) -> Reminder:
        repeat = None
        if row["repeat_interval"]:
            repeat = RepeatRule(interval=Interval(row["repeat_interval"]), anchor=from_iso(row["repeat_anchor"]))
        return Reminder(
            reminder_id=row["reminder_id"],
            task_id=row["task_id"],
            kind=NotificationKind(row["kind"]),
            fire_at=from_iso(row["fire_at"]),
            repeat=repeat,
            title=row["title"],
            body=row["body"],
            status=row["status"],
            run_count=int(row["run_count"] or 0),
            last_run_at=row["last_run_at"],
            last_error=row["last_error"],
            updated_at=row["updated_at"],
        )
