"""FSM states for multi-step bot flows."""

from aiogram.fsm.state import State, StatesGroup


class SearchStates(StatesGroup):
    """Free-text location search."""

    entering_query = State()


class ReviewStates(StatesGroup):
    """States for writing a review."""

    choosing_rating = State()
    entering_text = State()


class SuggestVenueStates(StatesGroup):
    """States for suggesting a missing venue."""

    waiting_city = State()
    waiting_state = State()
    waiting_venue_name = State()
    waiting_email = State()
    waiting_notes = State()


class EditVenueStates(StatesGroup):
    """States for owner/admin venue editing."""

    waiting_value = State()


class GrantOwnershipStates(StatesGroup):
    """States for granting venue ownership (admin)."""

    waiting_telegram_id = State()
    waiting_venue_id = State()


class ImportStates(StatesGroup):
    """States for Excel import of venues."""

    waiting_file = State()
