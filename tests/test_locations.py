"""Tests for state normalisation, location parsing and geo helpers."""

import pytest
from unittest.mock import AsyncMock, patch

from services.locations import (
    LocationResult,
    find_city_in_venues,
    haversine_miles,
    is_zip_code,
    normalize_state,
    parse_city_state,
    parse_location_params,
    parse_state_only,
    resolve_location_query,
    safe_decode_param,
    state_name,
    venue_coordinates,
)


@pytest.mark.parametrize("raw,expected", [
    ("tx", "TX"),
    ("Texas", "TX"),
    (" new york ", "NY"),
    ("District of Columbia", "DC"),
    ("washington dc", "DC"),
    ("zz", "ZZ"),
])
def test_normalize_state(raw, expected):
    assert normalize_state(raw) == expected


def test_state_name():
    assert state_name("wv") == "West Virginia"
    assert state_name("DC") == "Washington D.C."
    assert state_name("ZZ") == "ZZ"


def test_safe_decode_param():
    assert safe_decode_param("El%20Paso") == "El Paso"
    assert safe_decode_param("%E0%A4%A") == "%E0%A4%A"
    assert safe_decode_param("") is None
    assert safe_decode_param(None) is None


def test_parse_location_params():
    assert parse_location_params(["TX", "El%20Paso"]) == ("TX", "El Paso")
    assert parse_location_params(["TX"]) == ("TX", None)
    assert parse_location_params([]) == (None, None)


@pytest.mark.parametrize("text,expected", [
    ("El Paso TX", LocationResult("El Paso", "TX")),
    ("El Paso, TX", LocationResult("El Paso", "TX")),
    ("El Paso Texas", LocationResult("El Paso", "TX")),
    ("Charleston, West Virginia", LocationResult("Charleston", "WV")),
    ("Springfield", None),
    ("", None),
    (", TX", None),
])
def test_parse_city_state(text, expected):
    assert parse_city_state(text) == expected


def test_parse_state_only():
    assert parse_state_only("West Virginia") == "WV"
    assert parse_state_only("tx") == "TX"
    assert parse_state_only("El Paso") is None


def test_is_zip_code():
    assert is_zip_code("79901")
    assert is_zip_code(" 799 01 ")
    assert not is_zip_code("7990")
    assert not is_zip_code("79901-1234")


def test_find_city_in_venues(sample_venues):
    assert find_city_in_venues(sample_venues, "austin") == LocationResult("Austin", "TX")
    assert find_city_in_venues(sample_venues, "Dallas") is None


def test_haversine_miles():
    # El Paso to Austin
    assert haversine_miles(31.7619, -106.4850, 30.2672, -97.7431) == pytest.approx(528, rel=0.02)
    assert haversine_miles(10, 10, 10, 10) == 0


def test_venue_coordinates():
    assert venue_coordinates({"location": {"latitude": 1, "longitude": "2.5"}}) == (1.0, 2.5)
    assert venue_coordinates({"lat": 3, "lng": 4}) == (3.0, 4.0)
    assert venue_coordinates({"lat": "x", "lng": 4}) is None
    assert venue_coordinates({}) is None


@pytest.mark.asyncio
async def test_resolve_bare_state_before_city_state(sample_venues):
    # "West Virginia" would otherwise parse as city "West" in Virginia
    assert await resolve_location_query("West Virginia", sample_venues) == LocationResult("", "WV")


@pytest.mark.asyncio
async def test_resolve_city_state_and_known_city(sample_venues):
    assert await resolve_location_query("El Paso, TX", sample_venues) == LocationResult("El Paso", "TX")
    assert await resolve_location_query("Austin", sample_venues) == LocationResult("Austin", "TX")
    assert await resolve_location_query("Nowhere", sample_venues) is None


@pytest.mark.asyncio
async def test_resolve_zip_uses_lookup(sample_venues):
    lookup = AsyncMock(return_value=LocationResult("El Paso", "TX"))
    with patch("services.locations.lookup_zip_code", lookup):
        result = await resolve_location_query("79901", sample_venues)

    assert result == LocationResult("El Paso", "TX")
    lookup.assert_awaited_once_with("79901")


@pytest.mark.asyncio
async def test_lookup_zip_code_rejects_malformed_zip():
    from services.locations import lookup_zip_code

    assert await lookup_zip_code("123") is None
