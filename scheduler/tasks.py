"""Scheduler tasks: venue cache warm-up, fallback alerts, heartbeat."""

import os
from datetime import datetime, timedelta, timezone

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import settings
from database.db import async_session_maker
from database import crud
from services.directory import directory
from utils.cache import CacheSource
from utils.logger import LOGS_DIR, logger

HEARTBEAT_FILE = os.path.join(LOGS_DIR, "scheduler_heartbeat")
HEARTBEAT_INTERVAL_MINUTES = 30
HEARTBEAT_STALE_AFTER = timedelta(minutes=2 * HEARTBEAT_INTERVAL_MINUTES)

DEGRADED_SOURCES = {CacheSource.STALE_MEMORY, CacheSource.STALE_PERSISTED, CacheSource.EMPTY}

# Source of the last alert, so admins hear about an outage once
_alerted_source: CacheSource | None = None


async def warm_venue_cache(bot: Bot) -> None:
    """
    Refresh the venue snapshot before users hit an expired cache.

    Runs every ``cache_warmup_minutes``. Does nothing while the snapshot is
    still valid; otherwise fetches it and alerts admins when the backend was
    unreachable and stale data (or nothing) is being served.
    """
    global _alerted_source

    try:
        status = directory.cache_status()
        if status.item_count and not status.expired:
            logger.debug(f"Venue cache valid ({status.item_count} venues), warm-up skipped")
            return

        venues, source = await directory.get_all_with_source()
        logger.info(f"Venue cache warm-up: {len(venues)} venues from {source.value}")

        if source not in DEGRADED_SOURCES:
            if _alerted_source is not None:
                logger.info("Venue backend reachable again")
            _alerted_source = None
            return

        if _alerted_source == source:
            return
        _alerted_source = source

        async with async_session_maker() as session:
            admins = await crud.get_all_admins(session)

        for admin in admins:
            try:
                await bot.send_message(
                    chat_id=admin.telegram_id,
                    text=(
                        f"⚠️ <b>Venue backend unreachable</b>\n\n"
                        f"Serving {len(venues)} venues from: {source.value}.\n"
                        f"Check the API and use /admin → Refresh once it is back."
                    )
                )
            except TelegramAPIError as e:
                logger.error(f"Failed to notify admin {admin.telegram_id} about cache fallback: {e}")

    except Exception as e:
        logger.error(f"Error in warm_venue_cache: {e}", exc_info=True)


async def scheduler_heartbeat(bot: Bot) -> None:
    """
    Write a timestamp to a file for liveness monitoring.

    Runs every ``HEARTBEAT_INTERVAL_MINUTES``. The file is checked on bot startup to detect a
    scheduler outage.
    """
    try:
        os.makedirs(os.path.dirname(HEARTBEAT_FILE), exist_ok=True)
        with open(HEARTBEAT_FILE, "w") as f:
            f.write(datetime.now(timezone.utc).isoformat())
        logger.debug("Scheduler heartbeat written")
    except Exception as e:
        logger.error(f"Error writing scheduler heartbeat: {e}")


def last_heartbeat() -> datetime | None:
    """Time of the last heartbeat, None when missing or unreadable."""
    if not os.path.exists(HEARTBEAT_FILE):
        return None
    try:
        with open(HEARTBEAT_FILE, "r") as f:
            return datetime.fromisoformat(f.read().strip())
    except (OSError, ValueError) as e:
        logger.error(f"Error reading heartbeat file: {e}")
        return None


def check_heartbeat(now: datetime | None = None) -> bool:
    """Warn about a scheduler outage. Returns True when the last beat is stale."""
    last_beat = last_heartbeat()
    if last_beat is None:
        return False

    now = now or datetime.now(timezone.utc)
    if now - last_beat <= HEARTBEAT_STALE_AFTER:
        return False

    logger.warning(
        f"Scheduler was stale! Last heartbeat: {last_beat.isoformat()}. "
        f"Possible scheduler outage detected."
    )
    return True


def register_jobs(scheduler: AsyncIOScheduler, bot: Bot) -> None:
    """Add the cache warm-up (first run right away) and the heartbeat."""
    scheduler.add_job(
        warm_venue_cache,
        trigger="interval",
        minutes=settings.cache_warmup_minutes,
        args=[bot],
        id="warm_venue_cache",
        next_run_time=datetime.now(timezone.utc),
        replace_existing=True,
    )
    scheduler.add_job(
        scheduler_heartbeat,
        trigger="interval",
        minutes=HEARTBEAT_INTERVAL_MINUTES,
        args=[bot],
        id="scheduler_heartbeat",
        replace_existing=True,
    )
    logger.info(f"Scheduled {len(scheduler.get_jobs())} jobs")
