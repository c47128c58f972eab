"""User handlers: saved venues, own reviews and suggestions, profile."""

import re
from html import escape

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from database import crud
from database.db import async_session_maker
from database.models import User
from handlers.browse import render_venue_card
from keyboards.inline import get_back_to_menu_keyboard
from services.api_client import ApiError, api
from services.reviews import (
    backend_user_id,
    get_reviews_by_user,
    get_suggestions_by_user,
    get_user_profile,
    is_slug_taken,
    update_user_profile,
)
from utils.logger import logger
from utils.helpers import format_review


router = Router(name="user")

MAX_REVIEWS_SHOWN = 10
MAX_SUGGESTIONS_SHOWN = 5
SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]{1,30}[a-z0-9]$")


# ============== SAVED VENUES ==============

@router.callback_query(F.data.startswith("save:"))
async def callback_save_venue(callback: CallbackQuery, db_user: User) -> None:
    venue_id = callback.data.split(":", 1)[1]

    async with async_session_maker() as session:
        saved = await crud.save_venue(session, db_user.telegram_id, venue_id)

    text, markup = await render_venue_card(venue_id, db_user)
    await callback.message.edit_text(text, reply_markup=markup, disable_web_page_preview=True)
    await callback.answer("❤️ Saved" if saved else "Already saved")


@router.callback_query(F.data.startswith("unsave:"))
async def callback_unsave_venue(callback: CallbackQuery, db_user: User) -> None:
    venue_id = callback.data.split(":", 1)[1]

    async with async_session_maker() as session:
        removed = await crud.unsave_venue(session, db_user.telegram_id, venue_id)

    text, markup = await render_venue_card(venue_id, db_user)
    await callback.message.edit_text(text, reply_markup=markup, disable_web_page_preview=True)
    await callback.answer("💔 Removed" if removed else "Not in saved")


# ============== MY REVIEWS ==============

@router.callback_query(F.data == "menu:my_reviews")
async def callback_my_reviews(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    """Show the latest reviews written by the user."""
    await state.set_state(None)

    user_id = backend_user_id(db_user.telegram_id)
    reviews = await get_reviews_by_user(api, user_id)
    suggestions = await get_suggestions_by_user(api, user_id)
    suggestion_text = format_suggestions(suggestions)

    if not reviews:
        await callback.message.edit_text(
            "📝 <b>My reviews</b>\n\nYou haven't reviewed any venue yet." + suggestion_text,
            reply_markup=get_back_to_menu_keyboard(),
        )
        await callback.answer()
        return

    shown = reviews[:MAX_REVIEWS_SHOWN]
    text = f"📝 <b>My reviews</b> ({len(reviews)})\n\n" + "\n\n".join(format_review(r) for r in shown)
    text += suggestion_text
    await callback.message.edit_text(text, reply_markup=get_back_to_menu_keyboard())
    await callback.answer()


def format_suggestions(suggestions: list[dict]) -> str:
    if not suggestions:
        return ""
    lines = [f"\n\n💡 <b>My suggestions</b> ({len(suggestions)})"]
    for item in suggestions[:MAX_SUGGESTIONS_SHOWN]:
        name = item.get("venueName") or "Unnamed venue"
        place = ", ".join(p for p in (item.get("city"), item.get("state")) if p)
        status = item.get("status") or "pending"
        lines.append(f"• {escape(name)} ({escape(place)}) · {escape(status)}")
    return "\n".join(lines)


# ============== PROFILE ==============

def format_profile(profile: dict | None, db_user: User) -> str:
    profile = profile or {}
    name = profile.get("displayName") or db_user.full_name
    lines = [f"👤 <b>{escape(name)}</b>"]
    if profile.get("slug"):
        lines.append(f"🔗 Profile: {escape(profile['slug'])}")
    if profile.get("bio"):
        lines.append(f"\n{escape(profile['bio'])}")
    lines.append(f"\n🏢 Venues you manage: {len(db_user.owned_venue_ids or [])}")
    lines.append("\nChange your public link with /profile slug &lt;name&gt;")
    return "\n".join(lines)


@router.message(Command("profile"))
async def cmd_profile(message: Message, command: CommandObject, db_user: User) -> None:
    """/profile shows the directory profile, /profile slug <name> sets its public link."""
    user_id = backend_user_id(db_user.telegram_id)
    args = (command.args or "").split()

    if not args:
        profile = await get_user_profile(api, user_id)
        await message.answer(format_profile(profile, db_user), reply_markup=get_back_to_menu_keyboard())
        return

    if args[0] != "slug" or len(args) != 2:
        await message.answer("Usage: /profile or /profile slug &lt;name&gt;")
        return

    slug = args[1].lower()
    if not SLUG_RE.match(slug):
        await message.answer("❌ Use 3-32 lowercase letters, digits or dashes.")
        return
    if await is_slug_taken(api, slug, user_id):
        await message.answer("❌ That link is already taken, try another one.")
        return

    try:
        await update_user_profile(api, user_id, {"slug": slug})
    except ApiError as e:
        logger.error(f"Failed to update profile of {db_user.telegram_id}: {e}")
        await message.answer(f"❌ Could not update your profile: {e.message}")
        return

    logger.info(f"User {db_user.telegram_id} set profile slug {slug}")
    await message.answer(f"✅ Your profile link is now <b>{escape(slug)}</b>.")
