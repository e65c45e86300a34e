import logging
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import Message, CallbackQuery, TelegramObject, Update

logger = logging.getLogger(__name__)

ERROR_TEXT = (
    "⚠️ <b>Something went wrong.</b>\n\n"
    "Please try again in a moment."
)

class ErrorHandlingMiddleware(BaseMiddleware):
    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        try:
            return await handler(event, data)
        except Exception as e:
            logger.error(f"Unhandled exception while processing update: {e}", exc_info=True)

            if isinstance(event, Update):
                event = event.message or event.callback_query

            try:
                if isinstance(event, Message):
                    await event.answer(ERROR_TEXT, parse_mode="HTML")
                elif isinstance(event, CallbackQuery):
                    await event.message.answer(ERROR_TEXT, parse_mode="HTML")
                    await event.answer()
            except Exception as send_err:
                logger.error(f"Failed to send error message to user: {send_err}")

            # Logged above; the polling loop keeps running
            return None
