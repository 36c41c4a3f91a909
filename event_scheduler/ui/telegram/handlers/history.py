from __future__ import annotations

import html

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from event_scheduler.domain.common.errors import DomainError
from event_scheduler.domain.tasks.service import TaskLifecycleEngine
from event_scheduler.ui.telegram.handlers._common import command_args, render_history, resolve_task_id

router = Router()

HISTORY_LIMIT = 30


@router.message(Command("history"))
async def history_cmd(message: Message, engine: TaskLifecycleEngine):
    token = command_args(message)
    try:
        task_id = await resolve_task_id(engine, token, include_deleted=True) if token else None
    except DomainError as e:
        await message.reply(str(e))
        return
    views = await engine.history(task_id)
    await message.answer(render_history(views[:HISTORY_LIMIT]))


@router.message(Command("calendar"))
async def calendar_cmd(message: Message, engine: TaskLifecycleEngine):
    days = await engine.tasks_by_day()
    if not days:
        await message.answer("Calendar is empty.")
        return
    lines = []
    for day, tasks in days.items():
        lines.append(f"<b>{day:%a %Y-%m-%d}</b>")
        for t in tasks:
            lines.append(f"  {t.due_date:%H:%M} {html.escape(t.title)} ({t.status.value})")
    await message.answer("\n".join(lines))
