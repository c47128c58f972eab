"""Review and venue suggestion handlers."""

from html import escape

from aiogram import Router, F
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from database.models import User
from handlers.browse import render_venue_card
from keyboards.inline import (
    get_back_to_menu_keyboard,
    get_rating_keyboard,
    get_reviews_keyboard,
    get_skip_keyboard,
)
from services.api_client import ApiError, api
from services.directory import directory
from services.locations import STATE_NAMES, normalize_state
from services.reviews import (
    SuggestionInput,
    apply_rating,
    backend_user_id,
    create_or_update_review,
    create_suggestion,
    delete_review,
    get_recent_reviews,
    get_suggestion_by_venue,
    get_user_review,
    get_venue_reviews,
    remove_rating,
)
from utils.helpers import format_rating, format_review
from utils.logger import logger
from utils.states import ReviewStates, SuggestVenueStates


router = Router(name="reviews")

MAX_REVIEW_LENGTH = 1000


# ============== LIST ==============

@router.callback_query(F.data.startswith("reviews:"))
async def callback_reviews(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    venue_id = callback.data.split(":", 1)[1]
    venue = await directory.get_venue(venue_id)
    if not venue:
        await callback.answer("Venue not found", show_alert=True)
        return

    reviews = await get_venue_reviews(api, venue_id)
    own = await get_user_review(api, venue_id, backend_user_id(db_user.telegram_id))

    header = f"💬 <b>Reviews: {escape(venue.get('name', ''))}</b>"
    suggestion = await get_suggestion_by_venue(api, venue_id)
    if suggestion and suggestion.get("userDisplayName"):
        header += f"\n💡 Suggested by {escape(suggestion['userDisplayName'])}"
    if reviews:
        text = header + "\n\n" + "\n\n".join(format_review(r) for r in reviews)
    else:
        text = header + "\n\nNo reviews yet. Be the first!"

    await callback.message.edit_text(text, reply_markup=get_reviews_keyboard(venue_id, bool(own)))
    await callback.answer()


@router.callback_query(F.data == "menu:recent")
async def callback_recent_reviews(callback: CallbackQuery, state: FSMContext) -> None:
    await state.set_state(None)
    reviews = await get_recent_reviews(api)
    if reviews:
        text = "🆕 <b>Latest reviews</b>\n\n" + "\n\n".join(format_review(r) for r in reviews)
    else:
        text = "🆕 <b>Latest reviews</b>\n\nNo reviews yet."
    await callback.message.edit_text(text, reply_markup=get_back_to_menu_keyboard())
    await callback.answer()


# ============== WRITE ==============

@router.callback_query(F.data.startswith("review:"))
async def callback_write_review(callback: CallbackQuery, state: FSMContext) -> None:
    venue_id = callback.data.split(":", 1)[1]
    await state.set_state(ReviewStates.choosing_rating)
    await state.update_data(review_venue_id=venue_id)
    await callback.message.edit_text(
        "⭐ <b>Rate this venue</b>\n\nChoose from 1 to 5 stars:",
        reply_markup=get_rating_keyboard(venue_id),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("rate:"))
async def callback_rate(callback: CallbackQuery, state: FSMContext) -> None:
    _, venue_id, rating = callback.data.split(":")
    await state.set_state(ReviewStates.entering_text)
    await state.update_data(review_venue_id=venue_id, review_rating=int(rating))
    await callback.message.edit_text(
        f"{'⭐' * int(rating)}\n\nWrite a few words about your visit or skip:",
        reply_markup=get_skip_keyboard("review_skip"),
    )
    await callback.answer()


async def _save_review(message: Message, state: FSMContext, db_user: User, text: str | None) -> None:
    data = await state.get_data()
    venue_id = data.get("review_venue_id")
    rating = data.get("review_rating")
    await state.set_state(None)

    if not venue_id or not rating:
        await message.answer("❌ Review session expired.", reply_markup=get_back_to_menu_keyboard())
        return

    user_id = backend_user_id(db_user.telegram_id)
    venue = await directory.get_venue(venue_id) or {}
    previous = await get_user_review(api, venue_id, user_id)

    try:
        await create_or_update_review(
            api,
            venue_id,
            user_id,
            db_user.full_name,
            rating,
            text,
        )
    except (ApiError, ValueError) as e:
        logger.error(f"Failed to save review for venue {venue_id}: {e}")
        await message.answer(f"❌ Could not save the review: {e}", reply_markup=get_back_to_menu_keyboard())
        return

    card_text, markup = await render_venue_card(venue_id, db_user)
    avg, count = apply_rating(
        float(venue.get("avgRating") or 0),
        int(venue.get("reviewCount") or 0),
        rating,
        int(previous["rating"]) if previous and previous.get("rating") else None,
    )
    await message.answer(f"✅ Thanks, your review is saved!\n{format_rating(avg, count)}")
    await message.answer(card_text, reply_markup=markup, disable_web_page_preview=True)


@router.message(ReviewStates.entering_text, F.text)
async def process_review_text(message: Message, state: FSMContext, db_user: User) -> None:
    text = message.text.strip()
    if len(text) > MAX_REVIEW_LENGTH:
        await message.answer(f"❌ Too long, please keep it under {MAX_REVIEW_LENGTH} characters.")
        return
    await _save_review(message, state, db_user, text)


@router.callback_query(ReviewStates.entering_text, F.data == "review_skip")
async def callback_review_skip(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await callback.answer()
    await _save_review(callback.message, state, db_user, None)


# ============== DELETE ==============

@router.callback_query(F.data.startswith("review_del:"))
async def callback_delete_review(callback: CallbackQuery, db_user: User) -> None:
    venue_id = callback.data.split(":", 1)[1]
    user_id = backend_user_id(db_user.telegram_id)
    venue = await directory.get_venue(venue_id) or {}
    previous = await get_user_review(api, venue_id, user_id)

    try:
        await delete_review(api, venue_id, user_id)
    except ApiError as e:
        logger.error(f"Failed to delete review for venue {venue_id}: {e}")
        await callback.answer(f"❌ {e.message}", show_alert=True)
        return

    text, markup = await render_venue_card(venue_id, db_user)
    await callback.message.edit_text(text, reply_markup=markup, disable_web_page_preview=True)
    summary = "🗑 Review deleted"
    if previous and previous.get("rating"):
        avg, count = remove_rating(
            float(venue.get("avgRating") or 0),
            int(venue.get("reviewCount") or 0),
            int(previous["rating"]),
        )
        summary += f"\n{format_rating(avg, count)}"
    await callback.answer(summary)


# ============== SUGGEST A VENUE ==============

@router.callback_query(F.data == "menu:suggest")
async def callback_suggest(callback: CallbackQuery, state: FSMContext) -> None:
    await state.set_state(SuggestVenueStates.waiting_city)
    await callback.message.edit_text(
        "➕ <b>Suggest a venue</b>\n\nStep 1/5: which city is it in?",
        reply_markup=get_back_to_menu_keyboard(),
    )
    await callback.answer()


@router.message(SuggestVenueStates.waiting_city, F.text)
async def process_suggest_city(message: Message, state: FSMContext) -> None:
    await state.update_data(suggest_city=message.text.strip())
    await state.set_state(SuggestVenueStates.waiting_state)
    await message.answer("Step 2/5: state (code or name, e.g. TX or Texas):")


@router.message(SuggestVenueStates.waiting_state, F.text)
async def process_suggest_state(message: Message, state: FSMContext) -> None:
    code = normalize_state(message.text)
    if code not in STATE_NAMES:
        await message.answer("❌ Unknown state. Try again (e.g. TX or Texas):")
        return
    await state.update_data(suggest_state=code)
    await state.set_state(SuggestVenueStates.waiting_venue_name)
    await message.answer("Step 3/5: venue name:", reply_markup=get_skip_keyboard("suggest_skip_name"))


@router.message(SuggestVenueStates.waiting_venue_name, F.text)
async def process_suggest_name(message: Message, state: FSMContext) -> None:
    await state.update_data(suggest_name=message.text.strip())
    await state.set_state(SuggestVenueStates.waiting_email)
    await message.answer("Step 4/5: your email, in case we have questions:")


@router.callback_query(SuggestVenueStates.waiting_venue_name, F.data == "suggest_skip_name")
async def callback_suggest_skip_name(callback: CallbackQuery, state: FSMContext) -> None:
    await state.set_state(SuggestVenueStates.waiting_email)
    await callback.message.edit_text("Step 4/5: your email, in case we have questions:")
    await callback.answer()


@router.message(SuggestVenueStates.waiting_email, F.text)
async def process_suggest_email(message: Message, state: FSMContext) -> None:
    email = message.text.strip()
    if "@" not in email or "." not in email.rsplit("@", 1)[-1]:
        await message.answer("❌ That doesn't look like an email. Try again:")
        return
    await state.update_data(suggest_email=email)
    await state.set_state(SuggestVenueStates.waiting_notes)
    await message.answer(
        "Step 5/5: anything else (address, website, lanes)?",
        reply_markup=get_skip_keyboard("suggest_skip_notes"),
    )


async def _submit_suggestion(message: Message, state: FSMContext, db_user: User, notes: str | None) -> None:
    data = await state.get_data()
    await state.set_state(None)

    suggestion = SuggestionInput(
        city=data.get("suggest_city", ""),
        state=data.get("suggest_state", ""),
        email=data.get("suggest_email", ""),
        venue_name=data.get("suggest_name"),
        user_display_name=db_user.full_name,
        user_id=backend_user_id(db_user.telegram_id),
        notes=notes,
    )
    try:
        await create_suggestion(api, suggestion)
    except (ApiError, ValueError) as e:
        logger.error(f"Failed to submit suggestion from {db_user.telegram_id}: {e}")
        await message.answer(f"❌ Could not send the suggestion: {e}", reply_markup=get_back_to_menu_keyboard())
        return

    await message.answer(
        "✅ Thanks! We'll review your suggestion soon.",
        reply_markup=get_back_to_menu_keyboard(),
    )


@router.message(SuggestVenueStates.waiting_notes, F.text)
async def process_suggest_notes(message: Message, state: FSMContext, db_user: User) -> None:
    await _submit_suggestion(message, state, db_user, message.text.strip())


@router.callback_query(SuggestVenueStates.waiting_notes, F.data == "suggest_skip_notes")
async def callback_suggest_skip_notes(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await callback.answer()
    await _submit_suggestion(callback.message, state, db_user, None)
