from __future__ import annotations

import html
from typing import Iterable, Sequence, Tuple

from aiogram.types import Message

from event_scheduler.domain.common.errors import NotFoundError, ValidationError
from event_scheduler.domain.common.time import parse_user_datetime
from event_scheduler.domain.tasks.models import HistoryView, Interval, NewTask, Scope, Task, TaskChanges
from event_scheduler.domain.tasks.service import TaskLifecycleEngine

SHORT_ID_LEN = 8
SCOPE_ALL_WORDS = {"all", "future", "series"}

ADD_USAGE = "Usage: /add title | YYYY-MM-DD HH:MM [| daily|weekly|fortnightly|monthly|yearly] [| description]"


def command_args(message: Message) -> str:
    text = (message.text or "").strip()
    parts = text.split(maxsplit=1)
    if len(parts) < 2:
        return ""
    return parts[1].strip()


def parse_add_args(args: str) -> NewTask:
    parts = [p.strip() for p in args.split("|")]
    if len(parts) < 2 or not parts[0]:
        raise ValidationError(ADD_USAGE)

    title, due_raw = parts[0], parts[1]
    try:
        due = parse_user_datetime(due_raw)
    except ValueError:
        raise ValidationError(f"Invalid date: {due_raw}. {ADD_USAGE}") from None

    interval = Interval.NONE
    if len(parts) > 2 and parts[2]:
        try:
            interval = Interval(parts[2].lower())
        except ValueError:
            raise ValidationError(f"Unknown interval: {parts[2]}. {ADD_USAGE}") from None
    description = parts[3] if len(parts) > 3 else ""

    return NewTask(
        title=title,
        due_date=due,
        description=description,
        recurring=interval is not Interval.NONE,
        interval=interval,
    )


def parse_target_args(args: str) -> Tuple[str, Scope]:
    """'<id> [all]' -> (id prefix, scope)."""
    tokens = args.split()
    if not tokens:
        raise ValidationError("Give a task id (the short code from /tasks).")
    scope = Scope.SINGLE_OCCURRENCE
    if len(tokens) > 1 and tokens[1].lower() in SCOPE_ALL_WORDS:
        scope = Scope.THIS_AND_FUTURE
    return tokens[0], scope


EDIT_USAGE = "Usage: /edit <id> [all] | title=... | due=YYYY-MM-DD HH:MM | interval=none|daily|... | description=..."


def parse_edit_args(args: str) -> Tuple[str, Scope, TaskChanges]:
    head, _, rest = args.partition("|")
    token, scope = parse_target_args(head)

    fields = {}
    for part in rest.split("|"):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        key = key.strip().lower()
        if not sep or key not in {"title", "due", "interval", "description"}:
            raise ValidationError(EDIT_USAGE)
        fields[key] = value.strip()
    if not fields:
        raise ValidationError(EDIT_USAGE)

    due = None
    if "due" in fields:
        try:
            due = parse_user_datetime(fields["due"])
        except ValueError:
            raise ValidationError(f"Invalid date: {fields['due']}. {EDIT_USAGE}") from None

    interval = None
    recurring = None
    if "interval" in fields:
        try:
            interval = Interval(fields["interval"].lower() or "none")
        except ValueError:
            raise ValidationError(f"Unknown interval: {fields['interval']}. {EDIT_USAGE}") from None
        recurring = interval is not Interval.NONE

    changes = TaskChanges(
        title=fields.get("title"),
        description=fields.get("description"),
        due_date=due,
        recurring=recurring,
        interval=interval,
    )
    return token, scope, changes


async def resolve_task_id(engine: TaskLifecycleEngine, token: str, include_deleted: bool = False) -> str:
    """Unique id prefix -> full id. include_deleted also searches ids known only from history."""
    matches = [t.id for t in await engine.list_tasks() if t.id.startswith(token)]
    if not matches and include_deleted:
        matches = sorted({v.entry.task_id for v in await engine.history() if v.entry.task_id.startswith(token)})
    if not matches:
        raise NotFoundError(f"No task matches {token}.")
    if len(matches) > 1:
        raise ValidationError(f"{token} matches {len(matches)} tasks, give more characters.")
    return matches[0]


def render_task(task: Task) -> str:
    line = (
        f"<code>{task.id[:SHORT_ID_LEN]}</code> {html.escape(task.title)}"
        f" · {task.due_date:%Y-%m-%d %H:%M} · {task.status.value}"
    )
    if task.recurring:
        line += f" · 🔁 {task.interval.value}"
    return line


def render_tasks(tasks: Sequence[Task], empty: str = "No tasks.") -> str:
    if not tasks:
        return empty
    return "\n".join(render_task(t) for t in tasks)


def render_history(views: Iterable[HistoryView]) -> str:
    lines = []
    for view in views:
        e = view.entry
        change = e.change_type.value if e.change_type else "Change"
        old = e.old_status or "-"
        lines.append(
            f"{e.change_date:%Y-%m-%d %H:%M} {html.escape(view.label)}: {change} {old} → {e.new_status}"
        )
    return "\n".join(lines) if lines else "No history yet."
