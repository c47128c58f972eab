"""Derived views over the cached venue list (filtering, grouping, sorting)."""

from dataclasses import dataclass, field

from services.locations import haversine_miles, normalize_state, state_name, venue_coordinates


@dataclass(frozen=True)
class AmenityCategory:
    """Browsable experience backed by one or more amenity tags."""

    slug: str
    label: str
    tags: frozenset[str] = field(default_factory=frozenset)
    specials: bool = False

    def matches(self, venue: dict) -> bool:
        if self.specials:
            return bool(venue.get("specialsUrl"))
        amenities = venue.get("amenities") or []
        return any(tag in self.tags for tag in amenities)


def _category(slug: str, label: str, *tags: str) -> AmenityCategory:
    return AmenityCategory(slug=slug, label=label, tags=frozenset(tags))


AMENITY_CATEGORIES: dict[str, AmenityCategory] = {
    c.slug: c
    for c in (
        _category("leagues", "🏆 Leagues", "🏆 Leagues", "Leagues"),
        _category("tournaments", "🥇 Tournaments", "Tournaments"),
        _category("cosmic", "🌌 Cosmic Bowling", "Glow Bowling", "Cosmic Bowling"),
        _category("open-bowling", "🎳 Open Bowling", "Open Bowling"),
        _category("parties", "🎉 Parties", "Parties"),
        _category("arcade", "🕹 Arcade", "Arcade"),
        _category("lessons", "🎓 Bowling Lessons", "Bowling Lessons"),
        _category("seniors", "👴 Seniors / 55+", "Seniors / 55+"),
        _category("corporate", "💼 Corporate Events", "Corporate Events"),
        _category("batting-cages", "⚾ Batting Cages", "Batting Cages"),
        _category("restaurant", "🍽 Restaurant", "Food", "Restaurant"),
        _category("karaoke", "🎤 Karaoke", "Karaoke"),
        _category("bar", "🍺 Bar", "Bar"),
        _category("sports-bar", "📺 Sports Bar", "Sports Bar"),
        _category("snack-bar", "🍿 Snack Bar", "Food"),
        _category("pro-shop", "🛍 Pro Shop", "Pro Shop"),
        _category(
            "billiards", "🎱 Billiards",
            "Billiards/Pool", "🎱 Billiards/Pool", "Pool Tables", "🎱 Pool Tables",
        ),
        _category("laser-tag", "🔫 Laser Tag", "Laser Tag"),
        _category("duckpin", "🦆 Duckpin Bowling", "Duckpin Bowling"),
        _category("escape-rooms", "🔐 Escape Rooms", "Escape Rooms"),
        _category("candlepin", "🕯 Candlepin Bowling", "Candlepin Bowling"),
        _category("wheelchair", "♿ Wheelchair Accessible", "Wheelchair Accessible"),
        _category("kids", "🧒 Kid-Friendly", "Kid-Friendly"),
        _category(
            "ping-pong", "🏓 Ping Pong",
            "Ping Pong", "🏓 Ping Pong", "Table Tennis", "🏓 Table Tennis",
        ),
        AmenityCategory(slug="specials", label="🏷 Specials", specials=True),
    )
}


@dataclass(frozen=True)
class StateCount:
    state: str
    abbreviation: str
    count: int


@dataclass(frozen=True)
class Expansion:
    """City results, possibly widened to the surrounding area."""

    venues: list[dict]
    expanded: bool
    area: str | None = None


def get_category(slug: str) -> AmenityCategory | None:
    return AMENITY_CATEGORIES.get(slug)


def venue_state(venue: dict) -> str:
    """Normalized state code of a venue ('' when missing)."""
    state = venue.get("state")
    return normalize_state(state) if state else ""


def rating(venue: dict) -> float:
    return float(venue.get("avgRating") or 0)


def sort_by_rating(venues: list[dict]) -> list[dict]:
    """New list ordered by average rating, best first (stable)."""
    return sorted(venues, key=rating, reverse=True)


def _same_city(venue: dict, city: str) -> bool:
    return (venue.get("city") or "").strip().lower() == city.strip().lower()


def venue_states(venues: list[dict], category: AmenityCategory | None = None) -> list[str]:
    """
    Sorted state codes that have at least one venue.

    Args:
        venues: Venue list
        category: Only count venues in this category

    Returns:
        Unique two-letter codes, alphabetical
    """
    states = {
        venue_state(v)
        for v in venues
        if v.get("state") and (category is None or category.matches(v))
    }
    return sorted(states)


def venue_cities(venues: list[dict], state: str) -> list[str]:
    """Sorted unique city names within a state."""
    code = normalize_state(state)
    return sorted({v["city"] for v in venues if v.get("city") and venue_state(v) == code})


def venues_by_state(
    venues: list[dict],
    state: str,
    category: AmenityCategory | None = None,
) -> list[dict]:
    """Venues in a state (optionally one category), best rated first."""
    code = normalize_state(state)
    return sort_by_rating([
        v for v in venues
        if venue_state(v) == code and (category is None or category.matches(v))
    ])


def venues_by_city(venues: list[dict], state: str, city: str) -> list[dict]:
    """Venues in a city, best rated first (city match ignores case and padding)."""
    code = normalize_state(state)
    return sort_by_rating([v for v in venues if venue_state(v) == code and _same_city(v, city)])


def group_by_city(venues: list[dict]) -> dict[str, list[dict]]:
    """City -> venues, cities alphabetical, venue order preserved."""
    groups: dict[str, list[dict]] = {}
    for venue in venues:
        groups.setdefault(venue.get("city") or "Unknown", []).append(venue)
    return {city: groups[city] for city in sorted(groups)}


def state_counts(venues: list[dict]) -> list[StateCount]:
    """Venue count per state, ordered by full state name."""
    counts: dict[str, int] = {}
    for venue in venues:
        if venue.get("state"):
            code = venue_state(venue)
            counts[code] = counts.get(code, 0) + 1

    result = [StateCount(state=state_name(code), abbreviation=code, count=n) for code, n in counts.items()]
    return sorted(result, key=lambda sc: sc.state)


def top_alleys(venues: list[dict]) -> list[dict]:
    return [v for v in venues if v.get("isTopAlley")]


def founding_partners(venues: list[dict]) -> list[dict]:
    return [v for v in venues if v.get("isFoundingPartner")]


def sponsors(venues: list[dict]) -> list[dict]:
    return [v for v in venues if v.get("isSponsor")]


def featured(venues: list[dict]) -> list[dict]:
    """Sponsors first, then founding partners, backend order kept within each group."""
    return sponsors(venues) + [v for v in founding_partners(venues) if not v.get("isSponsor")]


def nearby(
    venues: list[dict],
    lat: float,
    lng: float,
    radius: float = 100,
    limit: int = 9,
) -> list[tuple[dict, float]]:
    """
    Active venues within a radius of a point, closest first.

    Args:
        venues: Venue list
        lat: Latitude of the search point
        lng: Longitude of the search point
        radius: Maximum distance in miles
        limit: Maximum number of results

    Returns:
        (venue, distance in miles) pairs

    Raises:
        ValueError: Coordinates out of range
    """
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValueError("Invalid coordinates")

    found = []
    for venue in venues:
        if venue.get("isActive") is False:
            continue
        coords = venue_coordinates(venue)
        if coords is None:
            continue
        distance = haversine_miles(lat, lng, *coords)
        if distance <= radius:
            found.append((venue, distance))

    found.sort(key=lambda pair: pair[1])
    return found[:limit]


def expand_city(
    venues: list[dict],
    state: str,
    city: str,
    min_results: int = 10,
    radius: float = 100,
) -> Expansion:
    """
    City results, widened when the city has fewer than ``min_results``.

    Widening uses the first city venue with coordinates as the centre and
    keeps state venues within ``radius`` miles, closest first. Without such a
    centre the state's ten best-rated venues are returned instead.
    """
    city_venues = venues_by_city(venues, state, city)
    if len(city_venues) >= min_results:
        return Expansion(venues=city_venues, expanded=False)

    state_venues = venues_by_state(venues, state)
    center = venue_coordinates(city_venues[0]) if city_venues else None
    if center is not None:
        within = []
        for venue in state_venues:
            coords = venue_coordinates(venue)
            if coords is None:
                continue
            distance = haversine_miles(*center, *coords)
            if distance <= radius:
                within.append((distance, venue))
        within.sort(key=lambda pair: pair[0])
        return Expansion(
            venues=[venue for _, venue in within],
            expanded=True,
            area=f"within {radius:g} miles",
        )

    return Expansion(venues=state_venues[:10], expanded=True, area=normalize_state(state))
