"""/start command handler and main menu."""

from html import escape

from aiogram import Router, F
from aiogram.filters import CommandObject, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery

from database.models import User
from handlers.browse import render_venue_card, render_cities
from keyboards.inline import get_main_menu_keyboard
from services.directory import directory
from services.locations import normalize_state
from utils.logger import logger


router = Router(name="start")


async def main_menu_text(db_user: User) -> str:
    total = await directory.total_count()
    return (
        f"👋 Hi, {escape(db_user.full_name)}!\n\n"
        f"🎳 Bowling alley directory: <b>{total}</b> venues across the USA.\n"
        f"Choose an action:"
    )


def main_menu_keyboard(db_user: User):
    return get_main_menu_keyboard(
        is_admin=db_user.is_admin,
        is_owner=bool(db_user.owned_venue_ids),
    )


@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext, db_user: User, command: CommandObject) -> None:
    """
    Handle /start command.

    Deep-link payloads: ``venue_<id>`` opens a venue card, ``state_<XX>``
    opens the cities of a state.

    Args:
        message: Telegram message
        state: FSM context
        db_user: User from database (injected by middleware)
        command: Parsed command with optional payload
    """
    await state.clear()
    logger.info(f"User {db_user.telegram_id} ({db_user.full_name}) started bot")

    payload = command.args or ""
    if payload.startswith("venue_"):
        text, markup = await render_venue_card(payload[len("venue_"):], db_user)
        await message.answer(text, reply_markup=markup)
        return
    if payload.startswith("state_"):
        text, markup = await render_cities(normalize_state(payload[len("state_"):]))
        await message.answer(text, reply_markup=markup)
        return

    await message.answer(await main_menu_text(db_user), reply_markup=main_menu_keyboard(db_user))


@router.callback_query(F.data == "menu:main")
async def callback_main_menu(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await state.clear()
    await callback.message.edit_text(await main_menu_text(db_user), reply_markup=main_menu_keyboard(db_user))
    await callback.answer()


@router.callback_query(F.data == "noop")
async def callback_noop(callback: CallbackQuery) -> None:
    await callback.answer()
