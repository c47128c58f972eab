"""US state normalisation, location text parsing and geo helpers."""

import math
import re
from dataclasses import dataclass
from urllib.parse import unquote

import aiohttp

from utils.logger import logger


ZIPPOPOTAM_URL = "https://api.zippopotam.us/us/{zip}"
EARTH_RADIUS_MILES = 3959

STATE_NAMES: dict[str, str] = {
    "AK": "Alaska", "AL": "Alabama", "AR": "Arkansas", "AZ": "Arizona",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut",
    "DC": "Washington D.C.", "DE": "Delaware", "FL": "Florida", "GA": "Georgia",
    "HI": "Hawaii", "IA": "Iowa", "ID": "Idaho", "IL": "Illinois", "IN": "Indiana",
    "KS": "Kansas", "KY": "Kentucky", "LA": "Louisiana", "MA": "Massachusetts",
    "MD": "Maryland", "ME": "Maine", "MI": "Michigan", "MN": "Minnesota", "MO": "Missouri",
    "MS": "Mississippi", "MT": "Montana", "NC": "North Carolina", "ND": "North Dakota",
    "NE": "Nebraska", "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico",
    "NV": "Nevada", "NY": "New York", "OH": "Ohio", "OK": "Oklahoma", "OR": "Oregon",
    "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VA": "Virginia", "VT": "Vermont", "WA": "Washington", "WI": "Wisconsin",
    "WV": "West Virginia", "WY": "Wyoming",
}

# Lower-cased code or full name -> code
_STATE_LOOKUP: dict[str, str] = {code.lower(): code for code in STATE_NAMES}
_STATE_LOOKUP.update({name.lower(): code for code, name in STATE_NAMES.items() if code != "DC"})
_STATE_LOOKUP.update({"district of columbia": "DC", "washington d.c.": "DC", "washington dc": "DC"})

_ZIP_RE = re.compile(r"^\d{5}$")


@dataclass(frozen=True)
class LocationResult:
    city: str
    state: str


def normalize_state(state: str) -> str:
    """
    Normalize any state spelling to its two-letter code.

    Args:
        state: Code or full name in any case ("tx", "Texas", "TX")

    Returns:
        Two-letter code, or the upper-cased input when unknown
    """
    cleaned = state.strip()
    return _STATE_LOOKUP.get(cleaned.lower(), cleaned.upper())


def state_name(abbr: str) -> str:
    """Full state name for a code (unknown codes are returned as is)."""
    return STATE_NAMES.get(abbr.upper(), abbr)


def safe_decode_param(value: str | None) -> str | None:
    """URL-decode a route parameter ("El%20Paso" -> "El Paso")."""
    if not value:
        return None
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def parse_location_params(parts: list[str]) -> tuple[str | None, str | None]:
    """
    Split route parameters into state and city.

    Args:
        parts: Path segments, e.g. ["TX", "El%20Paso"]

    Returns:
        (state, city), each None when absent
    """
    state = safe_decode_param(parts[0]) if len(parts) > 0 else None
    city = safe_decode_param(parts[1]) if len(parts) > 1 else None
    return state, city


def parse_city_state(text: str) -> LocationResult | None:
    """
    Parse "El Paso TX", "El Paso, TX", "El Paso Texas" or "El Paso, Texas".

    Without a comma the last word must be a two-letter code or a one-word
    state name; multi-word state names need the comma form.
    """
    trimmed = text.strip()
    if not trimmed:
        return None

    if "," in trimmed:
        city, _, state_raw = trimmed.partition(",")
        city, state_raw = city.strip(), state_raw.strip()
    else:
        parts = trimmed.split()
        if len(parts) < 2:
            return None
        last = parts[-1]
        if len(last) != 2 and last.lower() not in _STATE_LOOKUP:
            return None
        state_raw = last
        city = " ".join(parts[:-1])

    if not city or not state_raw:
        return None
    return LocationResult(city=city, state=normalize_state(state_raw))


def parse_state_only(text: str) -> str | None:
    """State code for input that is only a state ("Texas", "tx"), else None."""
    trimmed = text.strip()
    if not trimmed:
        return None
    return _STATE_LOOKUP.get(trimmed.lower())


def is_zip_code(text: str) -> bool:
    """True for a 5-digit US zip (inner whitespace ignored)."""
    return bool(_ZIP_RE.match(re.sub(r"\s", "", text)))


def find_city_in_venues(venues: list[dict], city: str) -> LocationResult | None:
    """First venue whose city matches (case-insensitive) as a location."""
    query = city.strip().lower()
    if not query:
        return None

    for venue in venues:
        venue_city = (venue.get("city") or "").strip()
        if venue_city.lower() == query and venue.get("state"):
            return LocationResult(city=venue_city, state=normalize_state(venue["state"]))
    return None


async def lookup_zip_code(zip_code: str, timeout: int = 10) -> LocationResult | None:
    """
    Resolve a US zip code to city and state via Zippopotam.

    Args:
        zip_code: Zip code, non-digits are stripped
        timeout: Request timeout in seconds

    Returns:
        LocationResult or None on any failure
    """
    cleaned = re.sub(r"\D", "", zip_code)
    if len(cleaned) != 5:
        return None

    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.get(ZIPPOPOTAM_URL.format(zip=cleaned)) as response:
                if response.status != 200:
                    return None
                data = await response.json(content_type=None)
    except Exception as e:
        logger.warning(f"Zip lookup failed for {cleaned}: {e}")
        return None

    places = data.get("places") if isinstance(data, dict) else None
    if not places:
        return None

    place = places[0]
    city = place.get("place name") or place.get("place_name") or ""
    state = str(place.get("state abbreviation") or place.get("state") or "")
    if not city or not state:
        return None
    return LocationResult(city=city, state=state.upper()[:2])


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def venue_coordinates(venue: dict) -> tuple[float, float] | None:
    """(lat, lng) from ``location`` or the legacy ``lat``/``lng`` fields."""
    location = venue.get("location") or {}
    lat = location.get("latitude", venue.get("lat"))
    lng = location.get("longitude", venue.get("lng"))
    if lat is None or lng is None:
        return None
    try:
        return float(lat), float(lng)
    except (TypeError, ValueError):
        return None


async def resolve_location_query(text: str, venues: list[dict]) -> LocationResult | None:
    """
    Turn free-text search into a location.

    Tried in order: zip code, bare state ("West Virginia"), "City, ST",
    then a city name known from the venue list. The city is empty when only
    a state matched.
    """
    if is_zip_code(text):
        return await lookup_zip_code(text)

    state = parse_state_only(text)
    if state:
        return LocationResult(city="", state=state)

    return parse_city_state(text) or find_city_in_venues(venues, text)
