from __future__ import annotations

import logging

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from event_scheduler.domain.common.errors import DomainError
from event_scheduler.domain.tasks.models import TaskStatus
from event_scheduler.domain.tasks.service import TaskLifecycleEngine
from event_scheduler.ui.telegram.handlers._common import (
    ADD_USAGE,
    command_args,
    parse_add_args,
    parse_edit_args,
    parse_target_args,
    render_task,
    render_tasks,
    resolve_task_id,
)

logger = logging.getLogger(__name__)

router = Router()

HELP_TEXT = "\n".join(
    [
        "Commands:",
        ADD_USAGE,
        "/tasks [done|archived|cancelled] - list tasks",
        "/edit <id> [all] | field=value ... - edit one occurrence or all future ones",
        "/done <id> - complete (recurring tasks get their next occurrence)",
        "/cancel <id> - cancel a pending task",
        "/archive <id> [all] - archive one occurrence or all future ones",
        "/delete <id> [all] - delete one occurrence or all future ones",
        "/restore <id> - move an archived or done task back to pending",
        "/history [id] - status change log, for one task (deleted ones too) or all",
        "/calendar - tasks grouped by day",
    ]
)

_LIST_FILTERS = {
    "": TaskStatus.PENDING,
    "pending": TaskStatus.PENDING,
    "done": TaskStatus.DONE,
    "archived": TaskStatus.ARCHIVED,
    "cancelled": TaskStatus.CANCELLED,
}


@router.message(CommandStart())
@router.message(Command("help"))
async def start_cmd(message: Message):
    await message.answer(HELP_TEXT)


@router.message(Command("add"))
async def add_cmd(message: Message, engine: TaskLifecycleEngine):
    try:
        result = await engine.create(parse_add_args(command_args(message)))
    except DomainError as e:
        await message.reply(str(e))
        return
    await message.answer(f"✅ Added\n{render_task(result.task)}")


@router.message(Command("tasks"))
async def tasks_cmd(message: Message, engine: TaskLifecycleEngine):
    key = command_args(message).lower()
    status = _LIST_FILTERS.get(key)
    if status is None:
        await message.reply("Usage: /tasks [done|archived|cancelled]")
        return
    tasks = await engine.list_tasks(status)
    await message.answer(render_tasks(tasks, empty=f"No {status.value.lower()} tasks."))


@router.message(Command("edit"))
async def edit_cmd(message: Message, engine: TaskLifecycleEngine):
    try:
        token, scope, changes = parse_edit_args(command_args(message))
        task_id = await resolve_task_id(engine, token)
        result = await engine.edit(task_id, changes, scope)
    except DomainError as e:
        await message.reply(str(e))
        return
    await message.answer("✏️ Updated\n" + render_tasks(result.tasks))


@router.message(Command("done"))
async def done_cmd(message: Message, engine: TaskLifecycleEngine):
    try:
        token, _ = parse_target_args(command_args(message))
        result = await engine.complete(await resolve_task_id(engine, token))
    except DomainError as e:
        await message.reply(str(e))
        return
    lines = [f"✔️ Done: {render_task(result.tasks[0])}"]
    if len(result.tasks) > 1:
        lines.append(f"Next: {render_task(result.tasks[1])}")
    await message.answer("\n".join(lines))


@router.message(Command("cancel"))
async def cancel_cmd(message: Message, engine: TaskLifecycleEngine):
    try:
        token, _ = parse_target_args(command_args(message))
        result = await engine.cancel(await resolve_task_id(engine, token))
    except DomainError as e:
        await message.reply(str(e))
        return
    await message.answer(f"Cancelled: {render_task(result.task)}")


@router.message(Command("archive"))
async def archive_cmd(message: Message, engine: TaskLifecycleEngine):
    try:
        token, scope = parse_target_args(command_args(message))
        result = await engine.archive(await resolve_task_id(engine, token), scope)
    except DomainError as e:
        await message.reply(str(e))
        return
    await message.answer(f"🗄 Archived {len(result.tasks)} task(s).")


@router.message(Command("delete"))
async def delete_cmd(message: Message, engine: TaskLifecycleEngine):
    try:
        token, scope = parse_target_args(command_args(message))
        result = await engine.delete(await resolve_task_id(engine, token), scope)
    except DomainError as e:
        await message.reply(str(e))
        return
    await message.answer(f"🗑 Deleted {len(result.removed)} task(s).")


@router.message(Command("restore"))
async def restore_cmd(message: Message, engine: TaskLifecycleEngine):
    try:
        token, _ = parse_target_args(command_args(message))
        result = await engine.restore(await resolve_task_id(engine, token))
    except DomainError as e:
        await message.reply(str(e))
        return
    await message.answer(f"↩️ Restored: {render_task(result.task)}")
