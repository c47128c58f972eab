"""Venue owner handlers: list owned venues and edit their details."""

from aiogram import Router, F
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from database import crud
from database.db import async_session_maker
from database.models import User
from handlers.browse import render_venue_card, render_venue_list
from keyboards.inline import EDITABLE_FIELDS, get_admin_back_keyboard, get_edit_venue_keyboard
from reports.generator import PRICE_FIELDS
from services.api_client import ApiError, api
from services.directory import directory
from services.reviews import backend_user_id, get_venues_by_owner
from utils.logger import logger
from utils.states import EditVenueStates


router = Router(name="owner")

MAX_TEXT_LENGTH = {"phone": 32, "website": 200, "description": 2000}


def can_edit(db_user: User, venue_id: str) -> bool:
    return db_user.is_admin or db_user.owns(venue_id)


def build_update(venue: dict, field: str, raw: str) -> dict:
    """
    Turn a user-entered value into a venue update body.

    Args:
        venue: Current venue record
        field: One of EDITABLE_FIELDS
        raw: Text sent by the user, "-" clears the field

    Returns:
        Partial venue body (prices go into the ``pricing`` object)

    Raises:
        ValueError: Invalid price or text too long
    """
    value = raw.strip()
    if field in PRICE_FIELDS:
        pricing = dict(venue.get("pricing") or {})
        if value == "-":
            pricing[field] = None
        else:
            try:
                price = float(value.lstrip("$").replace(",", "."))
            except ValueError:
                raise ValueError("Not a number")
            if price < 0:
                raise ValueError("Price can't be negative")
            pricing[field] = round(price, 2)
        return {"pricing": pricing}

    if value == "-":
        return {field: None}
    if len(value) > MAX_TEXT_LENGTH[field]:
        raise ValueError(f"Too long, maximum {MAX_TEXT_LENGTH[field]} characters")
    return {field: value}


async def sync_owned_venues(db_user: User) -> User:
    """Link venues the directory lists under the user as locally owned."""
    listed = await get_venues_by_owner(api, backend_user_id(db_user.telegram_id))
    missing = [v["id"] for v in listed if v.get("id") and not db_user.owns(v["id"])]
    if not missing:
        return db_user

    async with async_session_maker() as session:
        for venue_id in missing:
            db_user = await crud.grant_venue_ownership(session, db_user.telegram_id, venue_id) or db_user
    return db_user


@router.callback_query(F.data == "owner:main")
async def callback_owner_main(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await state.set_state(None)
    db_user = await sync_owned_venues(db_user)
    if not db_user.owned_venue_ids:
        await callback.message.edit_text(
            "🏢 <b>My venues</b>\n\nNo venues are linked to your account yet. "
            "Ask an administrator to grant you ownership.",
            reply_markup=get_admin_back_keyboard("menu:main"),
        )
        await callback.answer()
        return

    text, markup = await render_venue_list("owned", 0, db_user, state)
    await callback.message.edit_text(text, reply_markup=markup)
    await callback.answer()


@router.callback_query(F.data.startswith("edit:"))
async def callback_edit_venue(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    venue_id = callback.data.split(":", 1)[1]
    if not can_edit(db_user, venue_id):
        await callback.answer("⛔ You can't edit this venue.", show_alert=True)
        return

    await state.set_state(None)
    await callback.message.edit_text(
        "✏️ <b>Edit venue</b>\n\nWhat would you like to change?",
        reply_markup=get_edit_venue_keyboard(venue_id),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("editf:"))
async def callback_edit_field(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    _, venue_id, field = callback.data.split(":")
    if not can_edit(db_user, venue_id) or field not in EDITABLE_FIELDS:
        await callback.answer("⛔ You can't edit this venue.", show_alert=True)
        return

    await state.set_state(EditVenueStates.waiting_value)
    await state.update_data(edit_venue_id=venue_id, edit_field=field)

    hint = "a price in dollars, e.g. 5.50" if field in PRICE_FIELDS else "the new value"
    await callback.message.edit_text(
        f"{EDITABLE_FIELDS[field]}\n\nSend {hint}, or \"-\" to clear it:",
        reply_markup=get_admin_back_keyboard(f"edit:{venue_id}"),
    )
    await callback.answer()


@router.message(EditVenueStates.waiting_value, F.text)
async def process_edit_value(message: Message, state: FSMContext, db_user: User) -> None:
    data = await state.get_data()
    venue_id = data.get("edit_venue_id")
    field = data.get("edit_field")

    if not venue_id or not can_edit(db_user, venue_id):
        await state.set_state(None)
        await message.answer("⛔ You can't edit this venue.")
        return

    venue = await directory.get_venue(venue_id)
    if not venue:
        await state.set_state(None)
        await message.answer("❌ Venue not found.")
        return

    try:
        update = build_update(venue, field, message.text)
    except ValueError as e:
        await message.answer(f"❌ {e}. Try again:")
        return

    try:
        await directory.update_venue(venue_id, update)
    except ApiError as e:
        logger.error(f"User {db_user.telegram_id} failed to update venue {venue_id}: {e}")
        await message.answer(f"❌ Update failed: {e.message}")
        return

    await state.set_state(None)
    logger.info(f"User {db_user.telegram_id} updated {field} of venue {venue_id}")

    text, markup = await render_venue_card(venue_id, db_user)
    await message.answer("✅ Saved!")
    await message.answer(text, reply_markup=markup, disable_web_page_preview=True)
