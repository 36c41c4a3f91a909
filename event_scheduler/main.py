from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from datetime import timedelta
from pathlib import Path

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from event_scheduler.config import Settings, load_settings
from event_scheduler.domain.common.time import to_iso
from event_scheduler.domain.tasks.ports import NotificationScheduler
from event_scheduler.domain.tasks.service import TaskLifecycleEngine
from event_scheduler.infra.clock.system_clock import SystemClock
from event_scheduler.infra.db.connection import Database
from event_scheduler.infra.db.repo.reminders_sqlite import RemindersRepo
from event_scheduler.infra.db.repo.tasks_sqlite import TasksSqliteRepo
from event_scheduler.infra.db.schema_version import apply_migrations
from event_scheduler.infra.ids.uuid_gen import UuidGenerator
from event_scheduler.infra.notifications.scheduler import MutedNotificationScheduler, SqliteNotificationScheduler
from event_scheduler.infra.scheduler.loop import LoopConfig, ReminderLoop
from event_scheduler.ui.telegram.handlers import router
from event_scheduler.ui.telegram.middlewares.auth import OwnerOnlyMiddleware
from event_scheduler.ui.telegram.middlewares.di import DIMiddleware
from event_scheduler.ui.telegram.sender import TelegramReminderSender

logger = logging.getLogger(__name__)


def resolve_db_path(settings: Settings) -> Path:
    repo_root = Path(__file__).resolve().parents[1]  # .../event_scheduler/main.py -> repo root
    db_path = settings.db_path
    if not db_path.is_absolute():
        db_path = repo_root / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def build_engine(settings: Settings, db: Database, clock: SystemClock) -> TaskLifecycleEngine:
    scheduler: NotificationScheduler = SqliteNotificationScheduler(RemindersRepo(db), clock)
    if not settings.notifications_enabled:
        scheduler = MutedNotificationScheduler(scheduler)
    return TaskLifecycleEngine(
        store=TasksSqliteRepo(db),
        scheduler=scheduler,
        clock=clock,
        ids=UuidGenerator(),
        warning_lead=timedelta(minutes=settings.warning_minutes),
    )


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - [PID:%(process)d] - %(message)s'
    )
    pid = os.getpid()
    logger.info(f"Event scheduler starting - PID: {pid}")

    settings = load_settings()
    db_path = resolve_db_path(settings)
    logger.info("DB_PATH: %s", db_path)

    db = Database(str(db_path))
    clock = SystemClock(settings.timezone)
    await apply_migrations(db=db, now_iso=to_iso(clock.now()))

    engine = build_engine(settings, db, clock)
    await engine.resync()

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()

    dp.message.middleware(OwnerOnlyMiddleware(settings.owner_telegram_id))
    dp.callback_query.middleware(OwnerOnlyMiddleware(settings.owner_telegram_id))
    dp.message.middleware(DIMiddleware(engine=engine))
    dp.callback_query.middleware(DIMiddleware(engine=engine))
    dp.include_router(router)

    # --- reminders (background) ---
    loop = ReminderLoop(
        repo=RemindersRepo(db),
        send=TelegramReminderSender(bot, settings.owner_telegram_id),
        engine=engine,
        clock=clock,
        cfg=LoopConfig(
            poll_seconds=settings.reminder_poll_seconds,
            reevaluate_seconds=settings.reevaluate_seconds,
        ),
    )
    loop_task = asyncio.create_task(loop.run_forever())

    logger.info(f"Starting polling - PID: {pid}")
    try:
        await dp.start_polling(bot)
    except Exception:
        logger.error(f"Bot crashed - PID: {pid}", exc_info=True)
        raise
    finally:
        loop.stop()
        loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop_task
        await bot.session.close()
        logger.info(f"Shutdown complete - PID: {pid}")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
