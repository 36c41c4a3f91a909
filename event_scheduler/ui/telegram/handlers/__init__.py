"""
Handlers module - combines all handler routers.
"""
from __future__ import annotations

from aiogram import Router

from event_scheduler.ui.telegram.handlers import history, tasks

router = Router()

router.include_router(tasks.router)
router.include_router(history.router)

__all__ = ["router"]
