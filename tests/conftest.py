"""Pytest fixtures for bowling directory bot tests."""

import os

# Settings are read at import time
os.environ.setdefault("BOT_TOKEN", "123456:TEST")
os.environ.setdefault("DB_PASSWORD", "test")

import pytest
from unittest.mock import AsyncMock, MagicMock

from database.models import User
from tests.fakes import FakeClock, MemoryStore


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_session():
    """Create a mock async session."""
    session = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_bot():
    """Create a mock bot instance."""
    bot = AsyncMock()
    bot.send_message = AsyncMock()
    return bot


@pytest.fixture
def sample_user():
    """Create a sample user."""
    user = MagicMock(spec=User)
    user.telegram_id = 123456789
    user.full_name = "Test User"
    user.username = "testuser"
    user.is_admin = False
    user.owned_venue_ids = []
    return user


@pytest.fixture
def sample_admin():
    """Create a sample admin user."""
    user = MagicMock(spec=User)
    user.telegram_id = 987654321
    user.full_name = "Admin User"
    user.username = "adminuser"
    user.is_admin = True
    user.owned_venue_ids = []
    return user


@pytest.fixture
def sample_venues():
    """A small directory across three states."""
    return [
        {
            "id": "v1", "name": "Strike Zone", "city": "El Paso", "state": "TX",
            "avgRating": 4.5, "reviewCount": 10, "isTopAlley": True,
            "amenities": ["Leagues", "Cosmic Bowling", "Arcade"],
            "pricing": {"game": 5.0, "hourly": 40.0, "shoeRental": 4.0},
            "location": {"latitude": 31.7619, "longitude": -106.4850},
        },
        {
            "id": "v2", "name": "Sun Lanes", "city": "El Paso", "state": "Texas",
            "avgRating": 3.9, "reviewCount": 4, "isSponsor": True,
            "amenities": ["Bar", "Arcade"],
            "pricing": {"game": 6.0, "shoeRental": 5.0},
            "location": {"latitude": 31.80, "longitude": -106.40},
        },
        {
            "id": "v3", "name": "Austin Bowl", "city": "Austin", "state": "TX",
            "avgRating": 4.8, "reviewCount": 22,
            "amenities": ["Leagues", "Restaurant"],
            "pricing": {"hourly": 55.0},
            "lat": 30.2672, "lng": -97.7431,
        },
        {
            "id": "v4", "name": "Mountain Pins", "city": "Charleston", "state": "WV",
            "avgRating": 4.1, "reviewCount": 3, "isFoundingPartner": True,
            "amenities": ["Duckpin Bowling"],
            "pricing": {"game": 3.5, "hourly": 30.0, "shoeRental": 3.0},
        },
        {
            "id": "v5", "name": "Capitol Lanes", "city": "Washington", "state": "DC",
            "avgRating": 4.0, "reviewCount": 8,
            "pricing": {"game": 9.0, "hourly": 80.0},
        },
    ]
