"""Tests for reviews, suggestions and rating arithmetic."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from services import reviews
from services.api_client import ApiError
from services.reviews import SuggestionInput
from utils.cache import reviews_cache


@pytest.fixture
def client():
    client = MagicMock()
    client.get = AsyncMock()
    client.post = AsyncMock(return_value={"id": "s1"})
    client.put = AsyncMock(return_value=None)
    client.delete = AsyncMock(return_value=None)
    return client


@pytest.fixture(autouse=True)
def clear_reviews_cache():
    reviews_cache.clear()
    yield
    reviews_cache.clear()


def test_backend_user_id():
    assert reviews.backend_user_id(42) == "telegram:42"


def test_apply_rating_new_and_edited():
    assert reviews.apply_rating(4.0, 2, 1) == (3.0, 3)
    assert reviews.apply_rating(4.0, 2, 2, old=4) == (3.0, 2)
    assert reviews.apply_rating(0, 0, 5, old=3) == (5.0, 1)


def test_remove_rating():
    assert reviews.remove_rating(4.0, 2, 5) == (3.0, 1)
    assert reviews.remove_rating(5.0, 1, 5) == (0.0, 0)


@pytest.mark.asyncio
async def test_venue_reviews_are_cached(client):
    client.get.return_value = {"reviews": [{"rating": 5}, {"rating": 3}]}

    first = await reviews.get_venue_reviews(client, "v1", limit=1)
    second = await reviews.get_venue_reviews(client, "v1")

    assert first == [{"rating": 5}]
    assert len(second) == 2
    client.get.assert_awaited_once_with("/api/venues/v1/reviews")


@pytest.mark.asyncio
async def test_venue_reviews_error_returns_empty(client):
    client.get.side_effect = ApiError(0, "down")
    assert await reviews.get_venue_reviews(client, "v1") == []


@pytest.mark.asyncio
async def test_create_review_invalidates_caches(client):
    reviews_cache.set("venue:v1", [{"rating": 1}])
    venue_cache = MagicMock()

    with patch("services.reviews.venue_cache", venue_cache):
        await reviews.create_or_update_review(client, "v1", "telegram:1", "Test User", 4, "Great lanes")

    client.post.assert_awaited_once_with(
        "/api/reviews",
        {
            "venueId": "v1",
            "userId": "telegram:1",
            "rating": 4,
            "text": "Great lanes",
            "userDisplayName": "Test User",
        },
        require_auth=True,
    )
    assert reviews_cache.get("venue:v1") is None
    venue_cache.invalidate.assert_called_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6])
async def test_create_review_rejects_bad_rating(client, rating):
    with pytest.raises(ValueError):
        await reviews.create_or_update_review(client, "v1", "telegram:1", "Test User", rating)
    client.post.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_review_write_keeps_caches(client):
    client.post.side_effect = ApiError(500, "boom")
    venue_cache = MagicMock()

    with patch("services.reviews.venue_cache", venue_cache), pytest.raises(ApiError):
        await reviews.create_or_update_review(client, "v1", "telegram:1", "Test User", 5)

    venue_cache.invalidate.assert_not_called()


@pytest.mark.asyncio
async def test_delete_review(client):
    venue_cache = MagicMock()
    with patch("services.reviews.venue_cache", venue_cache):
        await reviews.delete_review(client, "v1", "telegram:1")

    client.delete.assert_awaited_once_with("/api/reviews/v1", require_auth=True, params={"userId": "telegram:1"})
    venue_cache.invalidate.assert_called_once()


def test_suggestion_payload_is_camel_case():
    payload = SuggestionInput(
        city="El Paso", state="TX", email="a@b.co", venue_name="Strike Zone", price_per_game=5.0
    ).to_payload()

    assert payload["venueName"] == "Strike Zone"
    assert payload["pricePerGame"] == 5.0
    assert payload["hasCosmicBowling"] is None
    assert "venue_name" not in payload


@pytest.mark.asyncio
async def test_create_suggestion(client):
    suggestion_id = await reviews.create_suggestion(
        client, SuggestionInput(city="El Paso", state="TX", email="a@b.co")
    )

    assert suggestion_id == "s1"
    assert client.post.await_args.args[0] == "/api/suggestions"


@pytest.mark.asyncio
async def test_create_suggestion_requires_fields(client):
    with pytest.raises(ValueError, match="email"):
        await reviews.create_suggestion(client, SuggestionInput(city="El Paso", state="TX", email=" "))
    client.post.assert_not_awaited()


@pytest.mark.asyncio
async def test_is_slug_taken(client):
    client.get.return_value = {"id": "telegram:2", "slug": "bowler"}

    assert await reviews.is_slug_taken(client, "bowler", "telegram:1") is True
    assert await reviews.is_slug_taken(client, "bowler", "telegram:2") is False
    assert await reviews.is_slug_taken(client, "", "telegram:1") is False
