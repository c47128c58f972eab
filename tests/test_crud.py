"""Tests for CRUD operations with mocked session."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy.exc import IntegrityError

from database.models import User


def make_user(**kwargs):
    user = User(telegram_id=1, full_name="Owner", is_admin=False, owned_venue_ids=[])
    for key, value in kwargs.items():
        setattr(user, key, value)
    return user


@pytest.mark.asyncio
async def test_get_or_create_returns_existing_user(mock_session):
    user = make_user()
    with patch("database.crud.get_user", AsyncMock(return_value=user)), \
         patch("database.crud.create_user", AsyncMock()) as create:
        from database.crud import get_or_create_user

        result = await get_or_create_user(mock_session, 1, "Owner")

    assert result is user
    create.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_user_starts_without_venues(mock_session):
    from database.crud import create_user

    user = await create_user(mock_session, telegram_id=5, full_name="New User", is_admin=True)

    assert user.owned_venue_ids == []
    assert user.is_admin is True
    mock_session.add.assert_called_once_with(user)
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_grant_venue_ownership(mock_session):
    user = make_user(owned_venue_ids=["v1"])
    with patch("database.crud.get_user", AsyncMock(return_value=user)):
        from database.crud import grant_venue_ownership

        result = await grant_venue_ownership(mock_session, 1, "v2")

    assert result.owned_venue_ids == ["v1", "v2"]
    assert result.owns("v2")
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_grant_venue_ownership_is_idempotent(mock_session):
    user = make_user(owned_venue_ids=["v1"])
    with patch("database.crud.get_user", AsyncMock(return_value=user)):
        from database.crud import grant_venue_ownership

        await grant_venue_ownership(mock_session, 1, "v1")

    assert user.owned_venue_ids == ["v1"]
    mock_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_grant_venue_ownership_unknown_user(mock_session):
    with patch("database.crud.get_user", AsyncMock(return_value=None)):
        from database.crud import grant_venue_ownership

        assert await grant_venue_ownership(mock_session, 404, "v1") is None


@pytest.mark.asyncio
async def test_revoke_venue_ownership(mock_session):
    user = make_user(owned_venue_ids=["v1", "v2"])
    with patch("database.crud.get_user", AsyncMock(return_value=user)):
        from database.crud import revoke_venue_ownership

        await revoke_venue_ownership(mock_session, 1, "v1")

    assert user.owned_venue_ids == ["v2"]
    assert not user.owns("v1")


@pytest.mark.asyncio
async def test_save_venue_already_saved(mock_session):
    with patch("database.crud.is_venue_saved", AsyncMock(return_value=True)):
        from database.crud import save_venue

        assert await save_venue(mock_session, 1, "v1") is False

    mock_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_save_venue_new(mock_session):
    with patch("database.crud.is_venue_saved", AsyncMock(return_value=False)):
        from database.crud import save_venue

        assert await save_venue(mock_session, 1, "v1") is True

    saved = mock_session.add.call_args.args[0]
    assert (saved.user_id, saved.venue_id) == (1, "v1")


@pytest.mark.asyncio
async def test_save_venue_concurrent_duplicate(mock_session):
    mock_session.commit.side_effect = IntegrityError("insert", {}, Exception("duplicate"))
    with patch("database.crud.is_venue_saved", AsyncMock(return_value=False)):
        from database.crud import save_venue

        assert await save_venue(mock_session, 1, "v1") is False

    mock_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_unsave_venue_reports_removal(mock_session):
    mock_session.execute.return_value = MagicMock(rowcount=1)
    from database.crud import unsave_venue

    assert await unsave_venue(mock_session, 1, "v1") is True

    mock_session.execute.return_value = MagicMock(rowcount=0)
    assert await unsave_venue(mock_session, 1, "v1") is False


@pytest.mark.asyncio
async def test_ensure_admin_promotes_existing_user(mock_session):
    user = make_user(is_admin=False)
    with patch("database.crud.get_user", AsyncMock(return_value=user)):
        from database.crud import ensure_admin

        result = await ensure_admin(mock_session, 1)

    assert result.is_admin is True
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_ensure_admin_creates_missing_user(mock_session):
    with patch("database.crud.get_user", AsyncMock(return_value=None)):
        from database.crud import ensure_admin

        result = await ensure_admin(mock_session, 7)

    assert result.telegram_id == 7
    assert result.is_admin is True
    mock_session.add.assert_called_once_with(result)


@pytest.mark.asyncio
async def test_update_user_sets_known_fields(mock_session):
    user = make_user(full_name="Old Name")
    with patch("database.crud.get_user", AsyncMock(return_value=user)):
        from database.crud import update_user

        result = await update_user(mock_session, 1, full_name="New Name", unknown="x")

    assert result.full_name == "New Name"
    assert not hasattr(result, "unknown")
