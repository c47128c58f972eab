"""Browsing handlers: states, cities, experiences, venue lists, search, nearby, pricing."""

from dataclasses import dataclass, field

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import (
    CallbackQuery,
    KeyboardButton,
    Message,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)

from database import crud
from database.db import async_session_maker
from database.models import User
from keyboards.inline import (
    get_back_to_menu_keyboard,
    get_categories_keyboard,
    get_cities_keyboard,
    get_pricing_keyboard,
    get_states_keyboard,
    get_venue_card_keyboard,
    get_venue_list_keyboard,
)
from reports.generator import build_pricing_report, pricing_cities, pricing_extremes, pricing_states
from services.directory import directory
from services.locations import normalize_state, parse_location_params, resolve_location_query, state_name
from services.views import get_category, group_by_city
from utils.helpers import format_price, format_pricing_report, format_venue_card
from utils.logger import logger
from utils.states import SearchStates


router = Router(name="browse")


@dataclass
class VenueList:
    title: str
    venues: list[dict] = field(default_factory=list)
    distances: list[float] | None = None
    back: str = "menu:main"


# ============== RENDERING ==============

async def render_venue_card(venue_id: str, db_user: User):
    """Return (text, markup) for a venue card."""
    venue = await directory.get_venue(venue_id)
    if not venue:
        return "❌ Venue not found.", get_back_to_menu_keyboard()

    async with async_session_maker() as session:
        is_saved = await crud.is_venue_saved(session, db_user.telegram_id, venue_id)

    markup = get_venue_card_keyboard(
        venue_id,
        is_saved=is_saved,
        can_edit=db_user.is_admin or db_user.owns(venue_id),
        is_admin=db_user.is_admin,
    )
    return format_venue_card(venue), markup


async def render_cities(state: str, page: int = 0):
    cities = await directory.cities(state)
    if not cities:
        return f"😔 No venues found in {state_name(state)}.", get_back_to_menu_keyboard()

    groups = group_by_city(await directory.by_state(state))
    busiest = sorted(groups.items(), key=lambda item: len(item[1]), reverse=True)[:3]
    summary = ", ".join(f"{city} ({len(venues)})" for city, venues in busiest)
    return (
        f"🗺 <b>{state_name(state)}</b>\n"
        f"Most venues: {summary}\n\nChoose a city:",
        get_cities_keyboard(state, cities, page),
    )


async def resolve_venue_list(list_key: str, db_user: User, state: FSMContext) -> VenueList:
    """
    Build the venue list behind a list key.

    Keys: "top", "featured", "saved", "owned", "near", "state:<XX>:<category|all>",
    "city:<XX>:<city>".
    """
    kind, _, rest = list_key.partition(":")

    if kind == "top":
        return VenueList("🏅 <b>Top alleys</b>", await directory.top_alleys())

    if kind == "featured":
        return VenueList("💎 <b>Featured venues</b>", await directory.featured())

    if kind in ("saved", "owned"):
        if kind == "saved":
            async with async_session_maker() as session:
                venue_ids = await crud.get_saved_venue_ids(session, db_user.telegram_id)
            title = "❤️ <b>Saved venues</b>"
        else:
            venue_ids = list(db_user.owned_venue_ids or [])
            title = "🏢 <b>My venues</b>\n\nChoose a venue to edit its details."
        venues = []
        for venue_id in venue_ids:
            venue = await directory.get_venue(venue_id)
            if venue:
                venues.append(venue)
        return VenueList(title, venues)

    if kind == "near":
        data = await state.get_data()
        if "near_lat" not in data:
            return VenueList("📍 Share your location again to see venues near you.")
        found = await directory.nearby(data["near_lat"], data["near_lng"])
        return VenueList(
            "📍 <b>Venues near you</b>",
            [venue for venue, _ in found],
            [distance for _, distance in found],
        )

    if kind == "state":
        code, _, slug = rest.partition(":")
        category = get_category(slug) if slug != "all" else None
        venues = await directory.by_state(code, category)
        label = f"{category.label} venues" if category else "Venues"
        back = f"cities:{code}:0" if category is None else f"st:{slug}:0"
        return VenueList(f"🎳 <b>{label} in {state_name(code)}</b>", venues, back=back)

    if kind == "city":
        code, _, city = rest.partition(":")
        expansion = await directory.with_expansion(code, city)
        title = f"🎳 <b>{city}, {code}</b>"
        if expansion.expanded:
            if expansion.area == code:
                area = f"in {state_name(code)}"
            else:
                area = expansion.area
            title += f"\nFew venues in {city}, showing venues {area}."
        return VenueList(title, expansion.venues, back=f"cities:{code}:0")

    return VenueList("❌ Unknown list.")


async def render_venue_list(list_key: str, page: int, db_user: User, state: FSMContext):
    venue_list = await resolve_venue_list(list_key, db_user, state)
    if not venue_list.venues:
        text = venue_list.title
        if not text.startswith(("📍 Share", "❌")):
            text += "\n\n😔 No venues found."
        return text, get_back_to_menu_keyboard()

    text = f"{venue_list.title}\n\nFound: {len(venue_list.venues)}"
    markup = get_venue_list_keyboard(
        venue_list.venues,
        list_key,
        page,
        distances=venue_list.distances,
        back_callback=venue_list.back,
    )
    return text, markup


# ============== STATES / CITIES ==============

@router.callback_query(F.data == "menu:browse")
async def callback_browse(callback: CallbackQuery) -> None:
    counts = await directory.state_counts()
    if not counts:
        await callback.message.edit_text(
            "😔 The directory is unavailable right now. Please try again later.",
            reply_markup=get_back_to_menu_keyboard(),
        )
        await callback.answer()
        return

    await callback.message.edit_text(
        "🗺 <b>Browse by state</b>\n\nChoose a state:",
        reply_markup=get_states_keyboard(counts, "all", 0),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("st:"))
async def callback_states_page(callback: CallbackQuery) -> None:
    _, slug, page = callback.data.split(":")
    if slug == "all":
        states = await directory.state_counts()
        title = "🗺 <b>Browse by state</b>"
    else:
        category = get_category(slug)
        if category is None:
            await callback.answer("Unknown category", show_alert=True)
            return
        states = await directory.states(category)
        title = f"{category.label}\n\nStates with matching venues: {len(states)}"

    if not states:
        await callback.message.edit_text(
            f"{title}\n\n😔 No venues found.", reply_markup=get_categories_keyboard()
        )
        await callback.answer()
        return

    await callback.message.edit_text(
        f"{title}\n\nChoose a state:",
        reply_markup=get_states_keyboard(states, slug, int(page)),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("state:"))
async def callback_state(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    _, slug, code = callback.data.split(":")
    if slug == "all":
        text, markup = await render_cities(code)
    else:
        text, markup = await render_venue_list(f"state:{code}:{slug}", 0, db_user, state)
    await callback.message.edit_text(text, reply_markup=markup)
    await callback.answer()


@router.callback_query(F.data.startswith("cities:"))
async def callback_cities_page(callback: CallbackQuery) -> None:
    _, code, page = callback.data.split(":")
    text, markup = await render_cities(code, int(page))
    await callback.message.edit_text(text, reply_markup=markup)
    await callback.answer()


@router.callback_query(F.data.startswith("city:"))
async def callback_city(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    _, code, city = callback.data.split(":", 2)
    text, markup = await render_venue_list(f"city:{code}:{city}", 0, db_user, state)
    await callback.message.edit_text(text, reply_markup=markup)
    await callback.answer()


@router.message(Command("locations"))
async def cmd_locations(message: Message, state: FSMContext, db_user: User, command: CommandObject) -> None:
    """/locations [state[/city]], URL-encoded segments accepted (TX/El%20Paso)."""
    parts = [p for p in (command.args or "").strip().split("/") if p]
    state_param, city = parse_location_params(parts)

    if not state_param:
        counts = await directory.state_counts()
        await message.answer(
            "🗺 <b>Browse by state</b>\n\nChoose a state:",
            reply_markup=get_states_keyboard(counts, "all", 0),
        )
        return

    code = normalize_state(state_param)
    if city:
        text, markup = await render_venue_list(f"city:{code}:{city}", 0, db_user, state)
    else:
        text, markup = await render_cities(code)
    await message.answer(text, reply_markup=markup)


# ============== EXPERIENCES ==============

@router.callback_query(F.data == "menu:experiences")
async def callback_experiences(callback: CallbackQuery) -> None:
    await callback.message.edit_text(
        "✨ <b>Experiences</b>\n\nWhat are you looking for?",
        reply_markup=get_categories_keyboard(),
    )
    await callback.answer()


# ============== VENUE LISTS / CARD ==============

@router.callback_query(F.data.startswith("vl:"))
async def callback_venue_list(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    list_key, _, page = callback.data[len("vl:"):].rpartition(":")
    text, markup = await render_venue_list(list_key, int(page), db_user, state)
    await callback.message.edit_text(text, reply_markup=markup)
    await callback.answer()


@router.callback_query(F.data.startswith("venue:"))
async def callback_venue(callback: CallbackQuery, state: FSMContext, db_user: User) -> None:
    await state.set_state(None)
    venue_id = callback.data.split(":", 1)[1]
    text, markup = await render_venue_card(venue_id, db_user)
    await callback.message.edit_text(text, reply_markup=markup, disable_web_page_preview=True)
    await callback.answer()


# ============== SEARCH ==============

@router.callback_query(F.data == "menu:search")
async def callback_search(callback: CallbackQuery, state: FSMContext) -> None:
    await state.set_state(SearchStates.entering_query)
    await callback.message.edit_text(
        "🔍 <b>Search</b>\n\n"
        "Send a zip code, a city with state (\"El Paso, TX\"), a state or a city name:",
        reply_markup=get_back_to_menu_keyboard(),
    )
    await callback.answer()


@router.message(SearchStates.entering_query, F.text)
async def process_search(message: Message, state: FSMContext, db_user: User) -> None:
    query = message.text.strip()
    location = await resolve_location_query(query, await directory.get_all())
    logger.info(f"User {db_user.telegram_id} searched '{query}' -> {location}")

    if location is None:
        await message.answer(
            f"😔 Couldn't find \"{query}\". Try \"City, ST\" or a 5-digit zip code.",
            reply_markup=get_back_to_menu_keyboard(),
        )
        return

    await state.set_state(None)
    if location.city:
        text, markup = await render_venue_list(f"city:{location.state}:{location.city}", 0, db_user, state)
    else:
        text, markup = await render_cities(location.state)
    await message.answer(text, reply_markup=markup)


# ============== NEARBY ==============

@router.callback_query(F.data == "menu:nearby")
async def callback_nearby(callback: CallbackQuery) -> None:
    keyboard = ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text="📍 Send my location", request_location=True)]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
    await callback.message.answer("Share your location to find bowling alleys nearby:", reply_markup=keyboard)
    await callback.answer()


@router.message(F.location)
async def process_location(message: Message, state: FSMContext, db_user: User) -> None:
    lat, lng = message.location.latitude, message.location.longitude
    await state.update_data(near_lat=lat, near_lng=lng)

    await message.answer("🔎 Looking around...", reply_markup=ReplyKeyboardRemove())
    try:
        text, markup = await render_venue_list("near", 0, db_user, state)
    except ValueError:
        text, markup = "❌ Invalid location.", get_back_to_menu_keyboard()
    await message.answer(text, reply_markup=markup)


# ============== PRICING ==============

async def render_usa_pricing(page: int = 0):
    venues = await directory.get_all()
    report = build_pricing_report(venues)
    extremes = pricing_extremes(venues)

    lines = [format_pricing_report(report)]
    if extremes.cheapest_by_game:
        lines.append("")
        lines.append(
            f"🟢 Cheapest game: {state_name(extremes.cheapest_by_game.state)} "
            f"{format_price(extremes.cheapest_by_game.price)}"
        )
        lines.append(
            f"🔴 Priciest game: {state_name(extremes.most_expensive_by_game.state)} "
            f"{format_price(extremes.most_expensive_by_game.price)}"
        )
    if extremes.cheapest_by_hour:
        lines.append(
            f"🟢 Cheapest hour: {state_name(extremes.cheapest_by_hour.state)} "
            f"{format_price(extremes.cheapest_by_hour.price)}"
        )
        lines.append(
            f"🔴 Priciest hour: {state_name(extremes.most_expensive_by_hour.state)} "
            f"{format_price(extremes.most_expensive_by_hour.price)}"
        )

    return "\n".join(lines), get_pricing_keyboard(pricing_states(venues), page)


@router.callback_query(F.data == "pricing:usa")
async def callback_pricing_usa(callback: CallbackQuery) -> None:
    text, markup = await render_usa_pricing()
    await callback.message.edit_text(text, reply_markup=markup)
    await callback.answer()


@router.callback_query(F.data.startswith("pricing:page:"))
async def callback_pricing_page(callback: CallbackQuery) -> None:
    text, markup = await render_usa_pricing(int(callback.data.rsplit(":", 1)[1]))
    await callback.message.edit_text(text, reply_markup=markup)
    await callback.answer()


@router.callback_query(F.data.startswith("pricing:state:"))
async def callback_pricing_state(callback: CallbackQuery) -> None:
    code = callback.data.rsplit(":", 1)[1]
    venues = await directory.get_all()
    report = build_pricing_report(venues, state=code)
    await callback.message.edit_text(
        format_pricing_report(report),
        reply_markup=get_pricing_keyboard([], state=code, cities=pricing_cities(venues, code)),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("pricing:city:"))
async def callback_pricing_city(callback: CallbackQuery) -> None:
    _, _, code, city = callback.data.split(":", 3)
    venues = await directory.get_all()
    report = build_pricing_report(venues, state=code, city=city)
    await callback.message.edit_text(
        format_pricing_report(report),
        reply_markup=get_pricing_keyboard([], state=code, cities=pricing_cities(venues, code)),
    )
    await callback.answer()
