"""Inline keyboards: menus, states/cities, venue lists, venue card, reviews, admin."""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from services.locations import state_name
from services.views import AMENITY_CATEGORIES, StateCount
from utils.helpers import format_venue_button


ITEMS_PER_PAGE = 8

# Telegram limits callback_data to 64 bytes
MAX_CALLBACK_BYTES = 64


def _fits(callback_data: str) -> bool:
    return len(callback_data.encode("utf-8")) <= MAX_CALLBACK_BYTES


def _page_bounds(total_items: int, page: int) -> tuple[int, int, int, int]:
    """Return (page, total_pages, start_idx, end_idx) with page clamped."""
    total_pages = (total_items + ITEMS_PER_PAGE - 1) // ITEMS_PER_PAGE
    if total_pages == 0:
        total_pages = 1

    page = max(0, min(page, total_pages - 1))
    start_idx = page * ITEMS_PER_PAGE
    return page, total_pages, start_idx, start_idx + ITEMS_PER_PAGE


def _add_nav_row(builder: InlineKeyboardBuilder, prefix: str, page: int, total_pages: int) -> None:
    if total_pages <= 1:
        return

    nav_buttons = []
    if page > 0:
        nav_buttons.append(
            InlineKeyboardButton(text="◀️", callback_data=f"{prefix}:{page - 1}")
        )
    nav_buttons.append(
        InlineKeyboardButton(text=f"{page + 1}/{total_pages}", callback_data="noop")
    )
    if page < total_pages - 1:
        nav_buttons.append(
            InlineKeyboardButton(text="▶️", callback_data=f"{prefix}:{page + 1}")
        )
    builder.row(*nav_buttons)


# ============== MAIN MENU ==============

def get_main_menu_keyboard(is_admin: bool = False, is_owner: bool = False) -> InlineKeyboardMarkup:
    """
    Get main menu keyboard.

    Args:
        is_admin: Whether user is admin (shows admin button)
        is_owner: Whether user owns venues (shows owner button)

    Returns:
        InlineKeyboardMarkup with main menu buttons
    """
    builder = InlineKeyboardBuilder()

    builder.row(InlineKeyboardButton(text="🗺 Browse by state", callback_data="menu:browse"))
    builder.row(InlineKeyboardButton(text="✨ Experiences", callback_data="menu:experiences"))
    builder.row(
        InlineKeyboardButton(text="🏅 Top alleys", callback_data="vl:top:0"),
        InlineKeyboardButton(text="💎 Featured", callback_data="vl:featured:0"),
    )
    builder.row(
        InlineKeyboardButton(text="🔍 Search", callback_data="menu:search"),
        InlineKeyboardButton(text="📍 Near me", callback_data="menu:nearby"),
    )
    builder.row(InlineKeyboardButton(text="💵 Bowling prices", callback_data="pricing:usa"))
    builder.row(
        InlineKeyboardButton(text="❤️ Saved", callback_data="vl:saved:0"),
        InlineKeyboardButton(text="📝 My reviews", callback_data="menu:my_reviews"),
    )
    builder.row(
        InlineKeyboardButton(text="🆕 Latest reviews", callback_data="menu:recent"),
        InlineKeyboardButton(text="➕ Suggest a venue", callback_data="menu:suggest"),
    )

    if is_owner or is_admin:
        builder.row(InlineKeyboardButton(text="🏢 My venues", callback_data="owner:main"))
    if is_admin:
        builder.row(InlineKeyboardButton(text="⚙️ Admin", callback_data="admin:main"))

    return builder.as_markup()


def get_back_to_menu_keyboard() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="◀️ Main menu", callback_data="menu:main"))
    return builder.as_markup()


# ============== BROWSING ==============

def get_categories_keyboard() -> InlineKeyboardMarkup:
    """Amenity categories (experiences)."""
    builder = InlineKeyboardBuilder()
    categories = list(AMENITY_CATEGORIES.values())
    for i in range(0, len(categories), 2):
        builder.row(*[
            InlineKeyboardButton(text=c.label, callback_data=f"st:{c.slug}:0")
            for c in categories[i:i + 2]
        ])
    builder.row(InlineKeyboardButton(text="◀️ Main menu", callback_data="menu:main"))
    return builder.as_markup()


def get_states_keyboard(
    states: list[StateCount] | list[str],
    category: str = "all",
    page: int = 0,
) -> InlineKeyboardMarkup:
    """
    Get paginated state list keyboard.

    Args:
        states: StateCount items (with counts) or plain state codes
        category: Category slug or "all"
        page: Current page (0-indexed)
    """
    builder = InlineKeyboardBuilder()
    page, total_pages, start_idx, end_idx = _page_bounds(len(states), page)

    for item in states[start_idx:end_idx]:
        if isinstance(item, StateCount):
            code, text = item.abbreviation, f"{item.state} ({item.count})"
        else:
            code, text = item, state_name(item)
        builder.row(InlineKeyboardButton(text=text, callback_data=f"state:{category}:{code}"))

    _add_nav_row(builder, f"st:{category}", page, total_pages)

    back = "menu:main" if category == "all" else "menu:experiences"
    builder.row(InlineKeyboardButton(text="◀️ Back", callback_data=back))
    return builder.as_markup()


def get_cities_keyboard(state: str, cities: list[str], page: int = 0) -> InlineKeyboardMarkup:
    """Paginated cities of a state, plus an all-venues shortcut."""
    builder = InlineKeyboardBuilder()
    page, total_pages, start_idx, end_idx = _page_bounds(len(cities), page)

    builder.row(
        InlineKeyboardButton(text=f"🎳 All venues in {state}", callback_data=f"vl:state:{state}:all:0")
    )
    for city in cities[start_idx:end_idx]:
        callback_data = f"city:{state}:{city}"
        if _fits(callback_data):
            builder.row(InlineKeyboardButton(text=city, callback_data=callback_data))

    _add_nav_row(builder, f"cities:{state}", page, total_pages)
    builder.row(InlineKeyboardButton(text="◀️ States", callback_data="menu:browse"))
    return builder.as_markup()


def get_venue_list_keyboard(
    venues: list[dict],
    list_key: str,
    page: int = 0,
    distances: list[float] | None = None,
    back_callback: str = "menu:main",
) -> InlineKeyboardMarkup:
    """
    Get paginated venue list keyboard.

    Args:
        venues: Venues to list (already ordered)
        list_key: Identifies the list for page callbacks, e.g. "state:TX:all"
        page: Current page (0-indexed)
        distances: Distance per venue, same order as venues
        back_callback: Callback of the back button

    Returns:
        InlineKeyboardMarkup with venue buttons and navigation
    """
    builder = InlineKeyboardBuilder()
    page, total_pages, start_idx, end_idx = _page_bounds(len(venues), page)

    for idx in range(start_idx, min(end_idx, len(venues))):
        venue = venues[idx]
        distance = distances[idx] if distances else None
        builder.row(
            InlineKeyboardButton(
                text=format_venue_button(venue, distance),
                callback_data=f"venue:{venue.get('id')}",
            )
        )

    prefix = f"vl:{list_key}"
    if _fits(f"{prefix}:{total_pages}"):
        _add_nav_row(builder, prefix, page, total_pages)

    builder.row(InlineKeyboardButton(text="◀️ Back", callback_data=back_callback))
    return builder.as_markup()


# ============== VENUE CARD ==============

def get_venue_card_keyboard(
    venue_id: str,
    is_saved: bool = False,
    can_edit: bool = False,
    is_admin: bool = False,
) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()

    builder.row(
        InlineKeyboardButton(text="💬 Reviews", callback_data=f"reviews:{venue_id}"),
        InlineKeyboardButton(text="✍️ Write review", callback_data=f"review:{venue_id}"),
    )
    builder.row(
        InlineKeyboardButton(
            text="💔 Remove from saved" if is_saved else "❤️ Save",
            callback_data=f"{'unsave' if is_saved else 'save'}:{venue_id}",
        )
    )
    if can_edit:
        builder.row(InlineKeyboardButton(text="✏️ Edit venue", callback_data=f"edit:{venue_id}"))
    if is_admin:
        builder.row(InlineKeyboardButton(text="⚙️ Admin actions", callback_data=f"adm_venue:{venue_id}"))

    builder.row(InlineKeyboardButton(text="◀️ Main menu", callback_data="menu:main"))
    return builder.as_markup()


# ============== REVIEWS ==============

def get_rating_keyboard(venue_id: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(*[
        InlineKeyboardButton(text="⭐" * n, callback_data=f"rate:{venue_id}:{n}")
        for n in range(1, 4)
    ])
    builder.row(*[
        InlineKeyboardButton(text="⭐" * n, callback_data=f"rate:{venue_id}:{n}")
        for n in range(4, 6)
    ])
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=f"venue:{venue_id}"))
    return builder.as_markup()


def get_skip_keyboard(callback_data: str = "skip") -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="⏭ Skip", callback_data=callback_data))
    return builder.as_markup()


def get_reviews_keyboard(venue_id: str, has_own_review: bool = False) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="✏️ Update my review" if has_own_review else "✍️ Write review",
            callback_data=f"review:{venue_id}",
        )
    )
    if has_own_review:
        builder.row(
            InlineKeyboardButton(text="🗑 Delete my review", callback_data=f"review_del:{venue_id}")
        )
    builder.row(InlineKeyboardButton(text="◀️ Back to venue", callback_data=f"venue:{venue_id}"))
    return builder.as_markup()


# ============== PRICING ==============

def get_pricing_keyboard(
    states: list[str],
    page: int = 0,
    state: str | None = None,
    cities: list[str] | None = None,
) -> InlineKeyboardMarkup:
    """States (USA view) or cities (state view) that have prices."""
    builder = InlineKeyboardBuilder()

    if state is None:
        page, total_pages, start_idx, end_idx = _page_bounds(len(states), page)
        for code in states[start_idx:end_idx]:
            builder.row(
                InlineKeyboardButton(text=state_name(code), callback_data=f"pricing:state:{code}")
            )
        _add_nav_row(builder, "pricing:page", page, total_pages)
        builder.row(InlineKeyboardButton(text="◀️ Main menu", callback_data="menu:main"))
        return builder.as_markup()

    for city in (cities or [])[:ITEMS_PER_PAGE * 2]:
        callback_data = f"pricing:city:{state}:{city}"
        if _fits(callback_data):
            builder.row(InlineKeyboardButton(text=city, callback_data=callback_data))
    builder.row(InlineKeyboardButton(text="◀️ USA", callback_data="pricing:usa"))
    return builder.as_markup()


# ============== OWNER ==============

EDITABLE_FIELDS: dict[str, str] = {
    "phone": "📞 Phone",
    "website": "🌐 Website",
    "description": "📝 Description",
    "game": "🎳 Price per game",
    "hourly": "⏱ Price per hour",
    "shoeRental": "👟 Shoe rental",
}


def get_edit_venue_keyboard(venue_id: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for field, label in EDITABLE_FIELDS.items():
        builder.row(InlineKeyboardButton(text=label, callback_data=f"editf:{venue_id}:{field}"))
    builder.row(InlineKeyboardButton(text="◀️ Back to venue", callback_data=f"venue:{venue_id}"))
    return builder.as_markup()


# ============== ADMIN ==============

def get_admin_main_menu_keyboard() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()

    builder.row(InlineKeyboardButton(text="📊 Cache status", callback_data="admin:cache"))
    builder.row(
        InlineKeyboardButton(text="🧹 Invalidate", callback_data="admin:invalidate"),
        InlineKeyboardButton(text="🔄 Refresh", callback_data="admin:refresh"),
    )
    builder.row(InlineKeyboardButton(text="📥 Pricing workbook", callback_data="admin:export"))
    builder.row(InlineKeyboardButton(text="📤 Import venues (Excel)", callback_data="admin:import"))
    builder.row(InlineKeyboardButton(text="🔑 Grant ownership", callback_data="admin:grant"))
    builder.row(InlineKeyboardButton(text="🏷 Amenity coverage", callback_data="admin:amenities"))
    builder.row(InlineKeyboardButton(text="◀️ Main menu", callback_data="menu:main"))

    return builder.as_markup()


def get_admin_venue_keyboard(venue: dict) -> InlineKeyboardMarkup:
    venue_id = venue.get("id")
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text=f"🏅 Top alley: {'on' if venue.get('isTopAlley') else 'off'}",
            callback_data=f"adm_toggle:{venue_id}:isTopAlley",
        )
    )
    builder.row(
        InlineKeyboardButton(
            text=f"💎 Sponsor: {'on' if venue.get('isSponsor') else 'off'}",
            callback_data=f"adm_toggle:{venue_id}:isSponsor",
        )
    )
    builder.row(InlineKeyboardButton(text="🗑 Delete venue", callback_data=f"adm_del:{venue_id}"))
    builder.row(InlineKeyboardButton(text="◀️ Back to venue", callback_data=f"venue:{venue_id}"))
    return builder.as_markup()


def get_confirm_keyboard(yes_callback: str, no_callback: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="✅ Yes", callback_data=yes_callback),
        InlineKeyboardButton(text="❌ No", callback_data=no_callback),
    )
    return builder.as_markup()


def get_admin_back_keyboard(back_to: str = "admin:main") -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="◀️ Back", callback_data=back_to))
    return builder.as_markup()
