from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from event_scheduler.domain.tasks.ports import Clock


class SystemClock(Clock):
    """Wall-clock time in the configured zone, returned naive to match stored due dates."""

    def __init__(self, tz_name: str) -> None:
        self._tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self._tz).replace(tzinfo=None, microsecond=0)
