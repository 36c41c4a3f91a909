from __future__ import annotations

import html

from aiogram import Bot

from event_scheduler.infra.db.repo.reminders_sqlite import Reminder

_ICONS = {
    "Due": "⏰",
    "Warning": "🔔",
    "Overdue": "⚠️",
    "Recurring": "🔁",
}


def format_reminder(reminder: Reminder) -> str:
    icon = _ICONS.get(reminder.kind.value, "")
    return f"{icon} <b>{html.escape(reminder.title)}</b>\n{html.escape(reminder.body)}".strip()


class TelegramReminderSender:
    """Delivers reminder rows as Telegram messages to one chat (the owner)."""

    def __init__(self, bot: Bot, chat_id: int) -> None:
        self._bot = bot
        self._chat_id = chat_id

    async def __call__(self, reminder: Reminder) -> None:
        await self._bot.send_message(chat_id=self._chat_id, text=format_reminder(reminder))
