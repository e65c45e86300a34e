from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

class ServicesMiddleware(BaseMiddleware):
    """
    Puts the shared use-case objects into handler data, so handlers can
    declare them as keyword arguments (``survey_machine``, ``registry``, ...).
    """
    def __init__(self, **services: Any):
        self.services = services

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        data.update(self.services)
        return await handler(event, data)
