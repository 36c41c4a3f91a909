from __future__ import annotations

import uuid

from event_scheduler.domain.tasks.ports import IdGenerator


class UuidGenerator(IdGenerator):
    """32 hex chars, no dashes: reminder ids append "-<kind>" and the chat UI matches on prefixes."""

    def new_id(self) -> str:
        return uuid.uuid4().hex
