# event_scheduler/infra/scheduler/loop.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from event_scheduler.domain.common.time import to_iso
from event_scheduler.domain.tasks.notifications import next_fire
from event_scheduler.domain.tasks.ports import Clock
from event_scheduler.domain.tasks.service import TaskLifecycleEngine
from event_scheduler.infra.db.repo.reminders_sqlite import Reminder, RemindersRepo

logger = logging.getLogger(__name__)


SendFn = Callable[[Reminder], Awaitable[None]]


@dataclass
class LoopConfig:
    poll_seconds: int = 30
    reevaluate_seconds: int = 300
    batch_limit: int = 25


class ReminderLoop:
    """
    Background driver, the only place that reads the real clock on a cadence:
    - delivers due reminder rows through `send`
    - re-arms repeating reminders at their next occurrence
    - calls engine.reevaluate() every `reevaluate_seconds` for overdue detection
    """

    def __init__(
        self,
        repo: RemindersRepo,
        send: SendFn,
        engine: TaskLifecycleEngine,
        clock: Clock,
        cfg: Optional[LoopConfig] = None,
    ) -> None:
        self._repo = repo
        self._send = send
        self._engine = engine
        self._clock = clock
        self._cfg = cfg or LoopConfig()
        self._stop = asyncio.Event()
        self._last_reevaluate: Optional[datetime] = None

    def stop(self) -> None:
        self._stop.set()

    async def run_forever(self) -> None:
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception as e:
                # never crash the bot because of reminders, but log errors
                logger.error(f"Reminder tick error: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._cfg.poll_seconds)
            except asyncio.TimeoutError:
                pass

    async def tick(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock.now()
        if self._reevaluate_due(now):
            await self._engine.reevaluate(now)
            self._last_reevaluate = now

        due = await self._repo.list_due(now, limit=self._cfg.batch_limit)
        for reminder in due:
            await self._deliver_one(reminder, now)
        return len(due)

    def _reevaluate_due(self, now: datetime) -> bool:
        if self._last_reevaluate is None:
            return True
        return (now - self._last_reevaluate).total_seconds() >= self._cfg.reevaluate_seconds

    async def _deliver_one(self, reminder: Reminder, now: datetime) -> None:
        now_iso = to_iso(now)
        try:
            await self._send(reminder)
            next_at = next_fire(reminder.repeat, now) if reminder.repeat else None
            await self._repo.mark_sent(reminder.reminder_id, next_at, now_iso)
        except Exception as e:
            logger.error(
                f"Reminder delivery failed: reminder_id={reminder.reminder_id}, kind={reminder.kind.value}, error={e}",
                exc_info=True,
            )
            await self._repo.mark_failed(reminder.reminder_id, str(e), now_iso)
