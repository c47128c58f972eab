"""Venue directory: cached reads, derived views and venue writes."""

from config import settings
from services import views
from services.api_client import ApiClient, ApiError, api
from services.views import AmenityCategory, Expansion, StateCount
from utils.cache import CacheSource, CacheStatus, VenueCache
from utils.logger import logger
from utils.storage import JsonFileStore


class VenueDirectory:
    """
    Facade over the venue cache and the venues API.

    Every write goes through this class and invalidates the cache once the
    backend has accepted it, so the next read sees the change.
    """

    def __init__(self, cache: VenueCache, client: ApiClient):
        self.cache = cache
        self.api = client

    async def get_all(self) -> list[dict]:
        return await self.cache.get_all()

    async def get_all_with_source(self) -> tuple[list[dict], CacheSource]:
        return await self.cache.get_all_with_source()

    def invalidate(self) -> None:
        self.cache.invalidate()

    def cache_status(self) -> CacheStatus:
        return self.cache.status()

    async def refresh(self) -> list[dict]:
        """Drop the snapshot and fetch it again."""
        self.invalidate()
        return await self.get_all()

    # ---------- views ----------

    async def states(self, category: AmenityCategory | None = None) -> list[str]:
        return views.venue_states(await self.get_all(), category)

    async def cities(self, state: str) -> list[str]:
        return views.venue_cities(await self.get_all(), state)

    async def by_state(self, state: str, category: AmenityCategory | None = None) -> list[dict]:
        return views.venues_by_state(await self.get_all(), state, category)

    async def by_city(self, state: str, city: str) -> list[dict]:
        return views.venues_by_city(await self.get_all(), state, city)

    async def with_expansion(self, state: str, city: str) -> Expansion:
        return views.expand_city(
            await self.get_all(),
            state,
            city,
            min_results=settings.city_min_results,
            radius=settings.proximity_radius_miles,
        )

    async def state_counts(self) -> list[StateCount]:
        return views.state_counts(await self.get_all())

    async def total_count(self) -> int:
        return len(await self.get_all())

    async def top_alleys(self) -> list[dict]:
        return views.top_alleys(await self.get_all())

    async def featured(self) -> list[dict]:
        return views.featured(await self.get_all())

    async def nearby(self, lat: float, lng: float) -> list[tuple[dict, float]]:
        return views.nearby(
            await self.get_all(),
            lat,
            lng,
            radius=settings.proximity_radius_miles,
            limit=settings.proximity_limit,
        )

    # ---------- single venue ----------

    async def get_venue(self, venue_id: str) -> dict | None:
        """
        Get venue by ID.

        Args:
            venue_id: Backend venue ID

        Returns:
            Venue from the cache, else from the API, None if not found
        """
        for venue in await self.get_all():
            if venue.get("id") == venue_id:
                return venue

        # New venues are not in the snapshot until the next refresh
        try:
            return await self.api.get(f"/api/venues/{venue_id}")
        except ApiError as e:
            logger.error(f"Error fetching venue {venue_id}: {e}")
            return None

    # ---------- writes ----------

    async def create_venue(self, data: dict, invalidate: bool = True) -> str:
        """
        Create venue.

        Args:
            data: Venue fields (camelCase)
            invalidate: Drop the cached snapshot afterwards; batch callers do it once

        Returns:
            New venue ID

        Raises:
            ApiError: Backend rejected the write
        """
        result = await self.api.post("/api/venues", data, require_auth=True)
        if invalidate:
            self.invalidate()
        venue_id = str(result["id"]) if isinstance(result, dict) and result.get("id") else ""
        logger.info(f"Venue created: {venue_id} ({data.get('name')})")
        return venue_id

    async def import_venues(self, items: list[dict]) -> tuple[int, list[str]]:
        """
        Create many venues, invalidating the cache once at the end.

        Args:
            items: Venue payloads (see services.import_excel)

        Returns:
            Tuple of (created_count, errors_list)
        """
        created = 0
        errors: list[str] = []
        try:
            for item in items:
                try:
                    await self.create_venue(item, invalidate=False)
                    created += 1
                except ApiError as e:
                    errors.append(f"{item.get('name')}: {e.message}")
        finally:
            if created:
                self.invalidate()

        logger.info(f"Imported {created} venues, {len(errors)} failed")
        return created, errors

    async def update_venue(self, venue_id: str, data: dict) -> None:
        """Update venue fields (raises ApiError)."""
        await self.api.put(f"/api/venues/{venue_id}", data, require_auth=True)
        self.invalidate()
        logger.info(f"Venue updated: {venue_id} ({', '.join(sorted(data))})")

    async def update_flags(self, venue_id: str, flags: dict[str, bool]) -> None:
        """Partially update listing flags such as isTopAlley (raises ApiError)."""
        await self.api.patch(f"/api/venues/{venue_id}", flags, require_auth=True)
        self.invalidate()
        logger.info(f"Venue flags updated: {venue_id} {flags}")

    async def delete_venue(self, venue_id: str) -> None:
        """Delete venue (raises ApiError)."""
        await self.api.delete(f"/api/venues/{venue_id}", require_auth=True)
        self.invalidate()
        logger.info(f"Venue deleted: {venue_id}")


async def _fetch_venues() -> list[dict]:
    return await api.get("/api/venues")


venue_cache = VenueCache(
    fetcher=_fetch_venues,
    store=JsonFileStore(settings.cache_dir),
    key=settings.venue_cache_key,
    ttl=settings.venue_cache_ttl,
)

directory = VenueDirectory(venue_cache, api)
