"""Tests for handler helpers: owner edits, admin guard, list rendering, profile."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from aiogram.types import CallbackQuery

from handlers.admin import admin_only
from handlers.browse import resolve_venue_list
from database.models import User
from handlers.owner import build_update, sync_owned_venues
from handlers.user import SLUG_RE, format_profile, format_suggestions


def test_build_update_price_keeps_other_prices():
    venue = {"pricing": {"game": 5.0, "shoeRental": 4.0}}
    assert build_update(venue, "hourly", "$42,50") == {
        "pricing": {"game": 5.0, "shoeRental": 4.0, "hourly": 42.5}
    }


def test_build_update_clears_values():
    assert build_update({"pricing": {"game": 5.0}}, "game", "-") == {"pricing": {"game": None}}
    assert build_update({}, "phone", " - ") == {"phone": None}


@pytest.mark.parametrize("field,raw", [("game", "cheap"), ("game", "-3"), ("phone", "5" * 40)])
def test_build_update_rejects_bad_values(field, raw):
    with pytest.raises(ValueError):
        build_update({}, field, raw)


@pytest.mark.asyncio
async def test_admin_only_blocks_regular_users(sample_user):
    handler = AsyncMock()
    callback = MagicMock(spec=CallbackQuery)
    callback.answer = AsyncMock()

    await admin_only(handler)(callback, state=MagicMock(), db_user=sample_user)

    handler.assert_not_awaited()
    callback.answer.assert_awaited_once()


@pytest.mark.asyncio
async def test_admin_only_passes_admins_through(sample_admin):
    calls = []

    async def handler(event, state, db_user):
        calls.append(db_user)

    await admin_only(handler)(MagicMock(), state=MagicMock(), db_user=sample_admin, bot=MagicMock())

    assert calls == [sample_admin]


@pytest.mark.asyncio
async def test_resolve_city_list_with_expansion(sample_venues, sample_user):
    directory = MagicMock()
    directory.with_expansion = AsyncMock(
        return_value=MagicMock(venues=sample_venues[:2], expanded=True, area="within 100 miles")
    )

    with patch("handlers.browse.directory", directory):
        result = await resolve_venue_list("city:TX:El Paso", sample_user, MagicMock())

    directory.with_expansion.assert_awaited_once_with("TX", "El Paso")
    assert "within 100 miles" in result.title
    assert result.back == "cities:TX:0"
    assert len(result.venues) == 2


@pytest.mark.asyncio
async def test_resolve_nearby_without_location(sample_user):
    state = MagicMock()
    state.get_data = AsyncMock(return_value={})

    result = await resolve_venue_list("near", sample_user, state)

    assert result.venues == []
    assert "Share your location" in result.title


@pytest.mark.asyncio
async def test_sync_owned_venues_grants_missing_only():
    user = User(telegram_id=42, full_name="Owner", owned_venue_ids=["v1"])
    granted = User(telegram_id=42, full_name="Owner", owned_venue_ids=["v1", "v2"])
    grant = AsyncMock(return_value=granted)

    with patch("handlers.owner.get_venues_by_owner", AsyncMock(return_value=[{"id": "v1"}, {"id": "v2"}])), \
         patch("handlers.owner.async_session_maker", MagicMock()), \
         patch("handlers.owner.crud.grant_venue_ownership", grant):
        result = await sync_owned_venues(user)

    grant.assert_awaited_once()
    assert grant.await_args.args[1:] == (42, "v2")
    assert result.owned_venue_ids == ["v1", "v2"]


@pytest.mark.asyncio
async def test_sync_owned_venues_nothing_listed():
    user = User(telegram_id=42, full_name="Owner", owned_venue_ids=[])

    with patch("handlers.owner.get_venues_by_owner", AsyncMock(return_value=[])), \
         patch("handlers.owner.crud.grant_venue_ownership", AsyncMock()) as grant:
        result = await sync_owned_venues(user)

    assert result is user
    grant.assert_not_awaited()


@pytest.mark.parametrize("slug,valid", [
    ("lane-lover", True),
    ("abc", True),
    ("ab", False),
    ("-abc", False),
    ("Abc", False),
    ("a" * 33, False),
])
def test_slug_pattern(slug, valid):
    assert bool(SLUG_RE.match(slug)) is valid


def test_format_suggestions():
    assert format_suggestions([]) == ""

    text = format_suggestions([
        {"venueName": "Strike <Zone>", "city": "Austin", "state": "TX", "status": "approved"},
        {"city": "Reno", "state": "NV"},
    ])

    assert "My suggestions</b> (2)" in text
    assert "Strike &lt;Zone&gt; (Austin, TX) · approved" in text
    assert "Unnamed venue (Reno, NV) · pending" in text


def test_format_profile_falls_back_to_telegram_name(sample_user):
    text = format_profile(None, sample_user)

    assert "Test User" in text
    assert "Venues you manage: 0" in text


def test_format_profile_shows_slug_and_bio(sample_user):
    text = format_profile({"displayName": "Pin Pal", "slug": "pin-pal", "bio": "300 game club"}, sample_user)

    assert "Pin Pal" in text
    assert "pin-pal" in text
    assert "300 game club" in text
