"""Bot entry point."""

import asyncio
import subprocess

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import settings
from database import crud
from database.db import async_session_maker, init_db, close_db
from middleware.auth import AuthMiddleware
from handlers import start, browse, reviews, user, owner, admin
from scheduler import tasks
from services.api_client import api
from utils.logger import logger


scheduler = AsyncIOScheduler()


def run_migrations() -> None:
    """Apply alembic migrations; failures are logged and init_db still runs."""
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            capture_output=True, text=True, timeout=60
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.error(f"Failed to run alembic migrations: {e}")
        return

    if result.returncode == 0:
        logger.info("Alembic migrations applied successfully")
    else:
        logger.error(f"Alembic migration failed: {result.stderr}")


async def on_startup(bot: Bot) -> None:
    logger.info("Bot starting...")

    run_migrations()
    await init_db()

    if settings.default_admin_id:
        async with async_session_maker() as session:
            await crud.ensure_admin(session, settings.default_admin_id)

    tasks.check_heartbeat()
    tasks.register_jobs(scheduler, bot)
    scheduler.start()

    bot_info = await bot.get_me()
    logger.info(f"Bot started: @{bot_info.username}, directory at {settings.api_url}")


async def on_shutdown(bot: Bot) -> None:
    logger.info("Bot shutting down...")

    scheduler.shutdown(wait=True)
    await api.close()
    await close_db()

    logger.info("Bot stopped")


def create_dispatcher() -> Dispatcher:
    """Dispatcher with auth middleware and routers in matching order."""
    dp = Dispatcher()

    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    dp.message.middleware(AuthMiddleware())
    dp.callback_query.middleware(AuthMiddleware())

    # Admin, owner and review flows before the generic browse handlers
    for module in (start, admin, owner, reviews, user, browse):
        dp.include_router(module.router)

    return dp


async def main() -> None:
    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    dp = create_dispatcher()

    logger.info("Starting polling...")
    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
