from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject


class DIMiddleware(BaseMiddleware):
    """
    Puts named services into the handler `data` dict.

    DIMiddleware(engine=engine) lets a handler declare
      async def handler(message: Message, engine: TaskLifecycleEngine): ...
    """

    def __init__(self, **services: Any) -> None:
        self._services = services

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data.update(self._services)
        return await handler(event, data)
