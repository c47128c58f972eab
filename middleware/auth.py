"""Middleware that registers users and injects them into handlers."""

from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import Message, CallbackQuery, TelegramObject

from config import settings
from database.db import async_session_maker
from database.crud import get_or_create_user, update_user
from utils.logger import logger


class AuthMiddleware(BaseMiddleware):
    """
    Loads the bot user for every message and callback.

    Unknown users are registered on first contact (the directory is public);
    the configured default admin is registered with admin rights.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user = None
        if isinstance(event, Message):
            user = event.from_user
        elif isinstance(event, CallbackQuery):
            user = event.from_user

        if not user:
            return await handler(event, data)

        telegram_id = user.id
        full_name = user.full_name or str(telegram_id)

        try:
            async with async_session_maker() as session:
                db_user = await get_or_create_user(
                    session,
                    telegram_id=telegram_id,
                    full_name=full_name,
                    username=user.username,
                    is_admin=bool(settings.default_admin_id and telegram_id == settings.default_admin_id),
                )
                # Telegram names change; keep ours current
                if db_user.full_name != full_name or db_user.username != user.username:
                    db_user = await update_user(
                        session, telegram_id, full_name=full_name, username=user.username
                    ) or db_user
        except Exception as e:
            logger.error(f"Auth middleware error: {e}")
            # DB offline: let the default admin in with a stub user
            if settings.default_admin_id and telegram_id == settings.default_admin_id:
                logger.warning(f"DB unavailable, allowing default admin {telegram_id} through")
                from database.models import User
                data["db_user"] = User(
                    telegram_id=telegram_id,
                    full_name="Admin (DB offline)",
                    is_admin=True,
                    owned_venue_ids=[],
                )
                return await handler(event, data)
            if isinstance(event, Message):
                await event.answer("⚠️ Service is temporarily unavailable. Please try again later.")
            elif isinstance(event, CallbackQuery):
                await event.answer("Service is temporarily unavailable.", show_alert=True)
            return None

        data["db_user"] = db_user
        return await handler(event, data)
