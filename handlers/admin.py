"""Admin handlers with button-based interface."""

import inspect
from functools import wraps
from html import escape
from pathlib import Path

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.types import Message, CallbackQuery, FSInputFile
from aiogram.fsm.context import FSMContext

from database.db import async_session_maker
from database.models import User
from database import crud
from keyboards.inline import (
    get_admin_main_menu_keyboard,
    get_admin_back_keyboard,
    get_admin_venue_keyboard,
    get_confirm_keyboard,
)
from reports.generator import generate_pricing_workbook
from services.api_client import ApiError, api
from services.directory import directory
from services.import_excel import parse_venues_excel
from services.reviews import get_all_amenities
from services.views import AMENITY_CATEGORIES
from utils.cache import reviews_cache
from utils.helpers import format_datetime
from utils.logger import logger
from utils.states import GrantOwnershipStates, ImportStates


router = Router(name="admin")

ADMIN_MENU_TEXT = "⚙️ <b>Admin panel</b>\n\nChoose a section:"


# ============== ADMIN CHECK DECORATOR ==============

def admin_only(handler):
    """Decorator to check if user is admin."""
    @wraps(handler)
    async def wrapper(event, state: FSMContext, db_user: User, **kwargs):
        if not db_user.is_admin:
            if isinstance(event, Message):
                await event.answer("⛔ Admins only.")
            elif isinstance(event, CallbackQuery):
                await event.answer("⛔ Admins only.", show_alert=True)
            return

        sig = inspect.signature(handler)
        handler_params = set(sig.parameters.keys())
        filtered_kwargs = {k: v for k, v in kwargs.items() if k in handler_params}

        return await handler(event, state, db_user, **filtered_kwargs)
    return wrapper


# ============== ADMIN MAIN MENU ==============

@router.message(Command("admin"))
@admin_only
async def cmd_admin(message: Message, state: FSMContext, db_user: User) -> None:
    await state.clear()
    await message.answer(ADMIN_MENU_TEXT, reply_markup=get_admin_main_menu_keyboard())


@router.callback_query(F.data == "admin:main")
@admin_only
async def callback_admin_main(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await state.clear()
    await callback.message.edit_text(ADMIN_MENU_TEXT, reply_markup=get_admin_main_menu_keyboard())
    await callback.answer()


# ============== CACHE ==============

def format_cache_status() -> str:
    status = directory.cache_status()

    if status.age_seconds is None:
        age = "-"
    else:
        hours, rest = divmod(int(status.age_seconds), 3600)
        age = f"{hours}h {rest // 60}m"

    source = status.last_source.value if status.last_source else "-"
    return (
        "📊 <b>Venue cache</b>\n\n"
        f"Venues: <b>{status.item_count}</b>\n"
        f"Fetched: {format_datetime(status.fetched_at, 'report')} UTC\n"
        f"Age: {age}\n"
        f"Expired: {'yes' if status.expired else 'no'}\n"
        f"Fetch in progress: {'yes' if status.fetching else 'no'}\n"
        f"Last served from: {source}"
    )


@router.callback_query(F.data == "admin:cache")
@admin_only
async def callback_cache_status(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await callback.message.edit_text(format_cache_status(), reply_markup=get_admin_back_keyboard())
    await callback.answer()


@router.callback_query(F.data == "admin:invalidate")
@admin_only
async def callback_cache_invalidate(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    directory.invalidate()
    reviews_cache.invalidate_prefix("venue:")
    logger.info(f"Admin {db_user.telegram_id} invalidated venue cache")
    await callback.message.edit_text(format_cache_status(), reply_markup=get_admin_back_keyboard())
    await callback.answer("🧹 Cache cleared, the next request refetches")


@router.callback_query(F.data == "admin:refresh")
@admin_only
async def callback_cache_refresh(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await callback.answer()
    await callback.message.edit_text("⏳ Refreshing venues...")

    venues = await directory.refresh()
    logger.info(f"Admin {db_user.telegram_id} refreshed venue cache: {len(venues)} venues")

    await callback.message.edit_text(format_cache_status(), reply_markup=get_admin_back_keyboard())


# ============== PRICING WORKBOOK ==============

@router.callback_query(F.data == "admin:export")
@admin_only
async def callback_export_pricing(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await callback.answer()
    await callback.message.edit_text("⏳ Generating report...")

    report_path = generate_pricing_workbook(await directory.get_all())
    if not report_path:
        await callback.message.edit_text(
            "❌ No pricing data for the report.",
            reply_markup=get_admin_back_keyboard(),
        )
        return

    try:
        await callback.message.answer_document(
            FSInputFile(report_path),
            caption="💵 <b>Bowling prices</b>\nUSA, states and cities",
        )
    finally:
        Path(report_path).unlink(missing_ok=True)

    logger.info(f"Admin {db_user.telegram_id} exported pricing workbook")
    await callback.message.edit_text(
        "✅ Report generated and sent!",
        reply_markup=get_admin_back_keyboard(),
    )


# ============== EXCEL IMPORT ==============

@router.callback_query(F.data == "admin:import")
@admin_only
async def callback_import_excel(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    """Start Excel import flow."""
    await state.set_state(ImportStates.waiting_file)
    await callback.answer()
    await callback.message.edit_text(
        "📤 <b>Import venues from Excel</b>\n\n"
        "Send an Excel file (.xlsx) with these columns:\n\n"
        "• <b>Name</b>, <b>City</b>, <b>State</b> (required)\n"
        "• Address, Zip, Phone, Website, Lanes (optional)\n"
        "• Amenities (comma separated), Game price, Hourly price, Shoe rental (optional)\n\n"
        "💡 The first row holds the column headers.",
        reply_markup=get_admin_back_keyboard(),
    )


@router.message(ImportStates.waiting_file, F.document)
@admin_only
async def process_import_file(message: Message, state: FSMContext, db_user: User) -> None:
    """Process uploaded Excel file."""
    doc = message.document

    if not doc.file_name or not doc.file_name.endswith((".xlsx", ".xls")):
        await message.answer(
            "❌ An .xlsx file is required.\n\nSend an Excel file or press «Back».",
            reply_markup=get_admin_back_keyboard(),
        )
        return

    await message.answer("⏳ Processing file...")

    tmp_dir = Path("tmp")
    tmp_dir.mkdir(exist_ok=True)
    file_path = tmp_dir / doc.file_name

    try:
        file = await message.bot.get_file(doc.file_id)
        await message.bot.download_file(file.file_path, destination=file_path)

        items, errors = parse_venues_excel(file_path)

        if not items and errors:
            await message.answer(
                "❌ <b>Import errors:</b>\n\n" + "\n".join(errors),
                reply_markup=get_admin_back_keyboard(),
            )
            return

        created, failed = await directory.import_venues(items)
        errors.extend(failed)

        result_lines = [
            "✅ <b>Import finished</b>\n",
            f"🎳 Added: <b>{created}</b>",
            f"⏭ Skipped: <b>{len(items) - created}</b>",
        ]
        if errors:
            result_lines.append("\n⚠️ <b>Notes:</b>")
            for err in errors[:20]:
                result_lines.append(f"• {err}")
            if len(errors) > 20:
                result_lines.append(f"... and {len(errors) - 20} more")

        await message.answer("\n".join(result_lines), reply_markup=get_admin_back_keyboard())
        logger.info(f"Admin {db_user.telegram_id} imported {created} venues from Excel")

    except Exception as e:
        logger.error(f"Excel import error: {e}", exc_info=True)
        await message.answer(f"❌ Import failed: {e}", reply_markup=get_admin_back_keyboard())
    finally:
        file_path.unlink(missing_ok=True)
        await state.clear()


@router.message(ImportStates.waiting_file)
@admin_only
async def process_import_not_file(message: Message, state: FSMContext, db_user: User) -> None:
    """Handle non-file messages during import."""
    await message.answer(
        "❌ Send an Excel file (.xlsx).\n\nPress «Back» to cancel.",
        reply_markup=get_admin_back_keyboard(),
    )


# ============== VENUE ACTIONS ==============

async def show_admin_venue(callback: CallbackQuery, venue_id: str) -> None:
    venue = await directory.get_venue(venue_id)
    if not venue:
        await callback.message.edit_text("❌ Venue not found.", reply_markup=get_admin_back_keyboard())
        return

    await callback.message.edit_text(
        f"⚙️ <b>{escape(venue.get('name', ''))}</b>\n"
        f"ID: <code>{venue_id}</code>\n"
        f"{venue.get('city', '')}, {venue.get('state', '')}",
        reply_markup=get_admin_venue_keyboard(venue),
    )


@router.callback_query(F.data.startswith("adm_venue:"))
@admin_only
async def callback_admin_venue(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await show_admin_venue(callback, callback.data.split(":", 1)[1])
    await callback.answer()


@router.callback_query(F.data.startswith("adm_toggle:"))
@admin_only
async def callback_admin_toggle(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    _, venue_id, flag = callback.data.split(":")
    if flag not in ("isTopAlley", "isSponsor"):
        await callback.answer("Unknown flag", show_alert=True)
        return

    venue = await directory.get_venue(venue_id)
    if not venue:
        await callback.answer("Venue not found", show_alert=True)
        return

    new_value = not venue.get(flag)
    try:
        await directory.update_flags(venue_id, {flag: new_value})
    except ApiError as e:
        logger.error(f"Admin {db_user.telegram_id} failed to toggle {flag} on {venue_id}: {e}")
        await callback.answer(f"❌ {e.message}", show_alert=True)
        return

    logger.info(f"Admin {db_user.telegram_id} set {flag}={new_value} on venue {venue_id}")
    await show_admin_venue(callback, venue_id)
    await callback.answer("✅ Updated")


@router.callback_query(F.data.startswith("adm_del:"))
@admin_only
async def callback_admin_delete(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    venue_id = callback.data.split(":", 1)[1]
    await callback.message.edit_text(
        "🗑 Delete this venue permanently?",
        reply_markup=get_confirm_keyboard(f"adm_delok:{venue_id}", f"adm_venue:{venue_id}"),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("adm_delok:"))
@admin_only
async def callback_admin_delete_confirm(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    venue_id = callback.data.split(":", 1)[1]
    try:
        await directory.delete_venue(venue_id)
    except ApiError as e:
        logger.error(f"Admin {db_user.telegram_id} failed to delete venue {venue_id}: {e}")
        await callback.answer(f"❌ {e.message}", show_alert=True)
        return

    logger.info(f"Admin {db_user.telegram_id} deleted venue {venue_id}")
    await callback.message.edit_text("✅ Venue deleted.", reply_markup=get_admin_back_keyboard())
    await callback.answer()


# ============== OWNERSHIP ==============

@router.callback_query(F.data == "admin:grant")
@admin_only
async def callback_grant_ownership(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await state.set_state(GrantOwnershipStates.waiting_telegram_id)
    await callback.message.edit_text(
        "🔑 <b>Grant ownership</b>\n\n"
        "Send the Telegram ID of the owner (they must have started the bot):",
        reply_markup=get_admin_back_keyboard(),
    )
    await callback.answer()


@router.message(GrantOwnershipStates.waiting_telegram_id, F.text)
@admin_only
async def process_grant_telegram_id(message: Message, state: FSMContext, db_user: User) -> None:
    try:
        telegram_id = int(message.text.strip())
    except ValueError:
        await message.answer("❌ Telegram ID must be a number. Try again:")
        return

    async with async_session_maker() as session:
        user = await crud.get_user(session, telegram_id)

    if not user:
        await message.answer("❌ User not found. They need to /start the bot first.")
        return

    await state.update_data(grant_telegram_id=telegram_id)
    await state.set_state(GrantOwnershipStates.waiting_venue_id)
    await message.answer(f"👤 {escape(user.full_name)}\n\nNow send the venue ID:")


@router.message(GrantOwnershipStates.waiting_venue_id, F.text)
@admin_only
async def process_grant_venue_id(message: Message, state: FSMContext, db_user: User) -> None:
    venue_id = message.text.strip()
    venue = await directory.get_venue(venue_id)
    if not venue:
        await message.answer("❌ Venue not found. Send another venue ID:")
        return

    data = await state.get_data()
    async with async_session_maker() as session:
        user = await crud.grant_venue_ownership(session, data["grant_telegram_id"], venue_id)
    await state.clear()

    if not user:
        await message.answer("❌ User not found.", reply_markup=get_admin_back_keyboard())
        return

    logger.info(f"Admin {db_user.telegram_id} granted venue {venue_id} to {user.telegram_id}")
    await message.answer(
        f"✅ {escape(user.full_name)} can now edit <b>{escape(venue.get('name', venue_id))}</b>.",
        reply_markup=get_admin_back_keyboard(),
    )


@router.message(Command("revoke"))
@admin_only
async def cmd_revoke(message: Message, state: FSMContext, db_user: User, command: CommandObject) -> None:
    """/revoke <telegram_id> <venue_id>"""
    parts = (command.args or "").split()
    if len(parts) != 2 or not parts[0].isdigit():
        await message.answer("Usage: /revoke &lt;telegram_id&gt; &lt;venue_id&gt;")
        return

    async with async_session_maker() as session:
        user = await crud.revoke_venue_ownership(session, int(parts[0]), parts[1])

    if not user:
        await message.answer("❌ User not found.")
        return

    logger.info(f"Admin {db_user.telegram_id} revoked venue {parts[1]} from {user.telegram_id}")
    await message.answer(f"✅ {escape(user.full_name)} no longer owns venue {escape(parts[1])}.")


# ============== AMENITIES ==============

@router.callback_query(F.data == "admin:amenities")
@admin_only
async def callback_amenity_coverage(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    """List backend amenities that no browsable experience picks up."""
    amenities = await get_all_amenities(api)
    names = [a.get("name", "") if isinstance(a, dict) else str(a) for a in amenities]

    covered = set()
    for category in AMENITY_CATEGORIES.values():
        covered |= category.tags
    uncovered = sorted(n for n in names if n and n not in covered)

    lines = [
        "🏷 <b>Amenity coverage</b>\n",
        f"Amenities in the directory: <b>{len(names)}</b>",
        f"Not shown under any experience: <b>{len(uncovered)}</b>",
    ]
    for name in uncovered[:30]:
        lines.append(f"• {escape(name)}")

    await callback.message.edit_text("\n".join(lines), reply_markup=get_admin_back_keyboard())
    await callback.answer()
