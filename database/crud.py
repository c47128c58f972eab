"""CRUD operations for database."""

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User, SavedVenue
from utils.logger import logger


# ============== USER OPERATIONS ==============

async def get_user(session: AsyncSession, telegram_id: int) -> User | None:
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    telegram_id: int,
    full_name: str,
    username: str | None = None,
    is_admin: bool = False,
) -> User:
    user = User(
        telegram_id=telegram_id,
        full_name=full_name,
        username=username,
        is_admin=is_admin,
        owned_venue_ids=[],
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"Created user: {telegram_id} ({full_name}), admin={is_admin}")
    return user


async def get_or_create_user(
    session: AsyncSession,
    telegram_id: int,
    full_name: str,
    username: str | None = None,
    is_admin: bool = False,
) -> User:
    """Return existing user, registering them on first contact."""
    user = await get_user(session, telegram_id)
    if user:
        return user
    return await create_user(session, telegram_id, full_name, username, is_admin)


async def get_all_admins(session: AsyncSession) -> list[User]:
    result = await session.execute(
        select(User).where(User.is_admin == True)
    )
    return list(result.scalars().all())


async def update_user(
    session: AsyncSession,
    telegram_id: int,
    **kwargs,
) -> User | None:
    user = await get_user(session, telegram_id)
    if not user:
        return None

    for key, value in kwargs.items():
        if hasattr(user, key):
            setattr(user, key, value)

    await session.commit()
    await session.refresh(user)

    logger.info(f"Updated user {telegram_id}: {kwargs}")
    return user


async def ensure_admin(session: AsyncSession, telegram_id: int) -> User:
    """Create the user as admin, or promote an existing one."""
    user = await get_user(session, telegram_id)
    if not user:
        user = await create_user(session, telegram_id=telegram_id, full_name="Admin", is_admin=True)
    elif not user.is_admin:
        user.is_admin = True
        await session.commit()
        logger.info(f"Upgraded user {telegram_id} to admin")
    return user


# ============== OWNERSHIP OPERATIONS ==============

async def grant_venue_ownership(
    session: AsyncSession,
    telegram_id: int,
    venue_id: str,
) -> User | None:
    """Allow user to edit a venue. Returns None if user not found."""
    user = await get_user(session, telegram_id)
    if not user:
        return None

    if venue_id not in (user.owned_venue_ids or []):
        # Reassign so the ARRAY column is flagged dirty
        user.owned_venue_ids = [*(user.owned_venue_ids or []), venue_id]
        await session.commit()
        await session.refresh(user)
        logger.info(f"Granted venue {venue_id} to user {telegram_id}")

    return user


async def revoke_venue_ownership(
    session: AsyncSession,
    telegram_id: int,
    venue_id: str,
) -> User | None:
    user = await get_user(session, telegram_id)
    if not user:
        return None

    if venue_id in (user.owned_venue_ids or []):
        user.owned_venue_ids = [v for v in user.owned_venue_ids if v != venue_id]
        await session.commit()
        await session.refresh(user)
        logger.info(f"Revoked venue {venue_id} from user {telegram_id}")

    return user


# ============== SAVED VENUE OPERATIONS ==============

async def is_venue_saved(session: AsyncSession, user_id: int, venue_id: str) -> bool:
    result = await session.execute(
        select(SavedVenue.id).where(
            SavedVenue.user_id == user_id,
            SavedVenue.venue_id == venue_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def save_venue(session: AsyncSession, user_id: int, venue_id: str) -> bool:
    """
    Bookmark venue for user.

    Returns:
        True if saved now, False if it was already saved
    """
    if await is_venue_saved(session, user_id, venue_id):
        return False

    session.add(SavedVenue(user_id=user_id, venue_id=venue_id))
    try:
        await session.commit()
    except IntegrityError:
        # Concurrent save of the same venue
        await session.rollback()
        return False

    logger.info(f"User {user_id} saved venue {venue_id}")
    return True


async def unsave_venue(session: AsyncSession, user_id: int, venue_id: str) -> bool:
    """Remove bookmark. Returns True if something was removed."""
    result = await session.execute(
        delete(SavedVenue).where(
            SavedVenue.user_id == user_id,
            SavedVenue.venue_id == venue_id,
        )
    )
    await session.commit()

    removed = result.rowcount > 0
    if removed:
        logger.info(f"User {user_id} removed saved venue {venue_id}")
    return removed


async def get_saved_venue_ids(session: AsyncSession, user_id: int) -> list[str]:
    """Saved venue IDs, most recent first."""
    result = await session.execute(
        select(SavedVenue.venue_id)
        .where(SavedVenue.user_id == user_id)
        .order_by(SavedVenue.created_at.desc())
    )
    return list(result.scalars().all())
