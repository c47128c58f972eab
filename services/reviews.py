"""Reviews, suggestions, user profiles and amenities via the directory API."""

from dataclasses import asdict, dataclass

from services.api_client import ApiClient, ApiError
from services.directory import venue_cache
from utils.cache import reviews_cache
from utils.logger import logger


MIN_RATING = 1
MAX_RATING = 5


def backend_user_id(telegram_id: int) -> str:
    """Directory user ID for a Telegram account."""
    return f"telegram:{telegram_id}"


# ---------- rating arithmetic ----------

def apply_rating(avg: float, count: int, new: int, old: int | None = None) -> tuple[float, int]:
    """
    Update a venue's rating aggregate for a new or edited review.

    Args:
        avg: Current average rating
        count: Current review count
        new: Rating being written
        old: Previous rating when the review is edited

    Returns:
        (new average, new count)
    """
    if old is None or count <= 0:
        return (avg * count + new) / (count + 1), count + 1
    return (avg * count + (new - old)) / count, count


def remove_rating(avg: float, count: int, rating: int) -> tuple[float, int]:
    """Rating aggregate after deleting a review (average 0 when none left)."""
    new_count = max(count - 1, 0)
    if new_count == 0:
        return 0.0, 0
    return (avg * count - rating) / new_count, new_count


# ---------- reviews ----------

async def get_venue_reviews(client: ApiClient, venue_id: str, limit: int = 10) -> list[dict]:
    """
    Get latest reviews of a venue.

    Args:
        client: API client
        venue_id: Venue ID
        limit: Maximum reviews returned (backend sends up to 50)

    Returns:
        Reviews, empty list on failure
    """
    cache_key = f"venue:{venue_id}"
    reviews = reviews_cache.get(cache_key)
    if reviews is None:
        try:
            data = await client.get(f"/api/venues/{venue_id}/reviews")
        except ApiError as e:
            logger.error(f"Error fetching reviews for venue {venue_id}: {e}")
            return []
        reviews = (data or {}).get("reviews") or []
        reviews_cache.set(cache_key, reviews)
    return reviews[:limit]


async def get_recent_reviews(client: ApiClient, limit: int = 6) -> list[dict]:
    try:
        return await client.get("/api/reviews/recent", params={"limit": limit}) or []
    except ApiError as e:
        logger.error(f"Error fetching recent reviews: {e}")
        return []


async def get_user_review(client: ApiClient, venue_id: str, user_id: str) -> dict | None:
    try:
        return await client.get(f"/api/reviews/venue/{venue_id}/user/{user_id}")
    except ApiError:
        return None


async def create_or_update_review(
    client: ApiClient,
    venue_id: str,
    user_id: str,
    user_display_name: str,
    rating: int,
    text: str | None = None,
) -> None:
    """
    Write the user's review of a venue (one review per user and venue).

    Raises:
        ValueError: Rating outside 1..5
        ApiError: Backend rejected the write
    """
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    await client.post(
        "/api/reviews",
        {
            "venueId": venue_id,
            "userId": user_id,
            "rating": rating,
            "text": text or None,
            "userDisplayName": user_display_name,
        },
        require_auth=True,
    )
    reviews_cache.invalidate(f"venue:{venue_id}")
    venue_cache.invalidate()
    logger.info(f"Review saved: venue={venue_id}, user={user_id}, rating={rating}")


async def delete_review(client: ApiClient, venue_id: str, user_id: str) -> None:
    """Delete the user's review of a venue (raises ApiError)."""
    await client.delete(f"/api/reviews/{venue_id}", require_auth=True, params={"userId": user_id})
    reviews_cache.invalidate(f"venue:{venue_id}")
    venue_cache.invalidate()
    logger.info(f"Review deleted: venue={venue_id}, user={user_id}")


async def get_reviews_by_user(client: ApiClient, user_id: str) -> list[dict]:
    try:
        return await client.get(f"/api/reviews/user/{user_id}") or []
    except ApiError:
        return []


# ---------- suggestions ----------

@dataclass
class SuggestionInput:
    """New venue suggestion; city, state and email are required."""

    city: str
    state: str
    email: str
    venue_name: str | None = None
    address: str | None = None
    user_display_name: str | None = None
    user_id: str | None = None
    phone: str | None = None
    website: str | None = None
    lanes: int | None = None
    price_per_game: float | None = None
    price_per_hour: float | None = None
    shoe_rental_price: float | None = None
    has_cosmic_bowling: bool | None = None
    has_leagues: bool | None = None
    notes: str | None = None

    def to_payload(self) -> dict:
        """camelCase body for the suggestions endpoint."""
        payload = {}
        for name, value in asdict(self).items():
            head, *rest = name.split("_")
            payload[head + "".join(part.title() for part in rest)] = value
        return payload


async def create_suggestion(client: ApiClient, suggestion: SuggestionInput) -> str:
    """
    Submit a venue suggestion.

    Returns:
        New suggestion ID

    Raises:
        ValueError: Required field missing
        ApiError: Backend rejected the write
    """
    missing = [f for f in ("city", "state", "email") if not getattr(suggestion, f).strip()]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")

    result = await client.post("/api/suggestions", suggestion.to_payload())
    suggestion_id = str(result.get("id", "")) if isinstance(result, dict) else ""
    logger.info(f"Suggestion created: {suggestion_id} ({suggestion.city}, {suggestion.state})")
    return suggestion_id


async def get_suggestions_by_user(client: ApiClient, user_id: str) -> list[dict]:
    try:
        return await client.get(f"/api/suggestions/user/{user_id}", require_auth=True) or []
    except ApiError:
        return []


async def get_suggestion_by_venue(client: ApiClient, venue_id: str) -> dict | None:
    try:
        return await client.get(f"/api/suggestions/venue/{venue_id}")
    except ApiError:
        return None


# ---------- user profiles ----------

async def get_user_profile(client: ApiClient, user_id: str) -> dict | None:
    try:
        return await client.get(f"/api/users/{user_id}")
    except ApiError:
        return None


async def get_user_by_slug(client: ApiClient, slug: str) -> dict | None:
    try:
        return await client.get(f"/api/users/by-slug/{slug}")
    except ApiError:
        return None


async def is_slug_taken(client: ApiClient, slug: str, current_user_id: str) -> bool:
    """True when another user already owns the profile slug."""
    if not slug:
        return False
    user = await get_user_by_slug(client, slug)
    return bool(user) and user.get("id") != current_user_id


async def update_user_profile(client: ApiClient, user_id: str, data: dict) -> None:
    """Update profile fields (raises ApiError)."""
    await client.put(f"/api/users/{user_id}", data, require_auth=True)


async def get_venues_by_owner(client: ApiClient, owner_id: str) -> list[dict]:
    try:
        return await client.get(f"/api/users/{owner_id}/venues") or []
    except ApiError:
        return []


# ---------- amenities ----------

async def get_all_amenities(client: ApiClient) -> list[dict]:
    try:
        return await client.get("/api/amenities") or []
    except ApiError as e:
        logger.error(f"Error fetching amenities: {e}")
        return []
