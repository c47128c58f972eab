"""Caches: keyed TTL cache for small lookups and the read-through venue snapshot cache."""

import asyncio
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from utils.logger import logger


class TTLCache:
    """In-memory TTL cache using dict + expiry timestamps."""

    def __init__(self, default_ttl: int = 300, clock: Callable[[], float] = time.monotonic):
        """
        Initialize cache.

        Args:
            default_ttl: Default time-to-live in seconds (default: 5 min)
            clock: Time source in seconds
        """
        self._store: dict[str, tuple[Any, float]] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """
        Get value by key if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value or None if missing/expired
        """
        if key not in self._store:
            return None

        value, expires_at = self._store[key]
        if self._clock() >= expires_at:
            del self._store[key]
            return None

        return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """
        Set value with TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (uses default if None)
        """
        if ttl is None:
            ttl = self._default_ttl
        self._store[key] = (value, self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        """Remove key from cache."""
        self._store.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        """Remove every key starting with prefix."""
        for key in [k for k in self._store if k.startswith(prefix)]:
            del self._store[key]

    def clear(self) -> None:
        """Clear entire cache."""
        self._store.clear()


class SnapshotStore(Protocol):
    """Key-value persistence used for the venue snapshot."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class CacheSource(str, Enum):
    """Where the last venue read was served from."""

    MEMORY = "memory"
    PERSISTED = "persisted"
    NETWORK = "network"
    STALE_MEMORY = "stale-memory"
    STALE_PERSISTED = "stale-persisted"
    EMPTY = "empty"


@dataclass
class CacheStatus:
    """Point-in-time view of the venue cache for diagnostics."""

    item_count: int
    fetched_at: datetime | None
    age_seconds: float | None
    expired: bool
    fetching: bool
    last_source: CacheSource | None


class VenueCache:
    """
    Read-through cache of the full venue list.

    Tiers, in order: in-memory snapshot, persisted snapshot, network fetch.
    A snapshot is valid while ``now - fetched_at < ttl`` and it is non-empty.
    Concurrent callers that miss both tiers share a single fetch. A failed
    fetch falls back to the stale memory snapshot, then the stale persisted
    one, then an empty list; ``get_all`` never raises.

    The returned list is shared between callers and must be treated as
    read-only.
    """

    def __init__(
        self,
        fetcher: Callable[[], Awaitable[list[dict]]],
        store: SnapshotStore,
        key: str,
        ttl: float,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache.

        Args:
            fetcher: Coroutine function returning the complete venue list
            store: Persisted key-value store
            key: Versioned storage key for the snapshot
            ttl: Snapshot time-to-live in seconds
            clock: Wall-clock time source in epoch seconds (persisted
                snapshots outlive the process, so monotonic time won't do)
        """
        self._fetcher = fetcher
        self._store = store
        self._key = key
        self._ttl = ttl
        self._clock = clock

        self._items: list[dict] = []
        self._fetched_at: float = 0.0
        self._in_flight: asyncio.Task | None = None
        # Fetch dropped by invalidate() that may still be running
        self._superseded: asyncio.Task | None = None
        self._generation = 0
        self.last_source: CacheSource | None = None

    @property
    def fetched_at(self) -> float:
        """Epoch seconds of the in-memory snapshot (0 when never fetched)."""
        return self._fetched_at

    def _is_valid(self, items: list[dict], fetched_at: float, now: float) -> bool:
        return bool(items) and now - fetched_at < self._ttl

    async def get_all(self) -> list[dict]:
        """
        Get the full venue list.

        Returns:
            Every known venue, in backend order (possibly stale or empty)
        """
        venues, _ = await self.get_all_with_source()
        return venues

    async def get_all_with_source(self) -> tuple[list[dict], CacheSource]:
        """Like ``get_all``, also naming the tier that answered this call."""
        now = self._clock()

        if self._is_valid(self._items, self._fetched_at, now):
            self.last_source = CacheSource.MEMORY
            logger.debug("Venues: using memory cache")
            return self._items, CacheSource.MEMORY

        stored = self._load_persisted()
        if stored is not None and self._is_valid(stored[0], stored[1], now):
            self._items, self._fetched_at = stored
            self.last_source = CacheSource.PERSISTED
            logger.info(f"Venues: using persisted cache ({len(self._items)} venues)")
            return self._items, CacheSource.PERSISTED

        # The in-flight marker is published before the first await so that
        # re-entrant callers attach to it instead of starting a second fetch.
        if self._in_flight is None:
            previous, self._superseded = self._superseded, None
            self._in_flight = asyncio.ensure_future(self._refresh(self._generation, previous))

        return await asyncio.shield(self._in_flight)

    def invalidate(self) -> None:
        """
        Drop the in-memory and persisted snapshot.

        The next ``get_all`` starts a new fetch once the running one, if any,
        has finished; at most one fetch is ever in flight. The running fetch
        still answers its own waiters but no longer replaces the snapshot.
        """
        self._items = []
        self._fetched_at = 0.0
        self._generation += 1
        if self._in_flight is not None:
            self._superseded = self._in_flight
            self._in_flight = None
        try:
            self._store.remove(self._key)
        except Exception as e:
            logger.warning(f"Venues: failed to clear persisted cache: {e}")
        logger.info("Venues: cache invalidated")

    def status(self) -> CacheStatus:
        """Describe the current snapshot."""
        now = self._clock()
        has_snapshot = self._fetched_at > 0
        return CacheStatus(
            item_count=len(self._items),
            fetched_at=(
                datetime.fromtimestamp(self._fetched_at, tz=timezone.utc) if has_snapshot else None
            ),
            age_seconds=now - self._fetched_at if has_snapshot else None,
            expired=not self._is_valid(self._items, self._fetched_at, now),
            fetching=self._in_flight is not None,
            last_source=self.last_source,
        )

    async def _refresh(
        self, generation: int, previous: asyncio.Task | None = None
    ) -> tuple[list[dict], CacheSource]:
        if previous is not None and not previous.done():
            logger.debug("Venues: waiting for the superseded fetch to finish")
            await asyncio.wait({previous})

        try:
            logger.info("Venues: fetching from API")
            venues = await self._fetcher()
            if not isinstance(venues, list):
                raise ValueError(f"expected a list of venues, got {type(venues).__name__}")
        except Exception as e:
            logger.error(f"Failed to load venues from API: {e}")
            return self._fallback()
        else:
            self.last_source = CacheSource.NETWORK
            if generation != self._generation:
                logger.info("Venues: fetch finished after invalidation, snapshot not stored")
                return venues, CacheSource.NETWORK

            fetched_at = max(self._clock(), self._fetched_at)
            self._items = venues
            self._fetched_at = fetched_at
            self._save_persisted(venues, fetched_at)
            logger.info(f"Venues: cached {len(venues)} venues")
            return venues, CacheSource.NETWORK
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None

    def _fallback(self) -> tuple[list[dict], CacheSource]:
        if self._items:
            source = CacheSource.STALE_MEMORY
            logger.warning("Venues: using stale memory cache due to fetch error")
            items = self._items
        else:
            stored = self._load_persisted()
            if stored is not None:
                source = CacheSource.STALE_PERSISTED
                logger.warning("Venues: using stale persisted cache due to fetch error")
                items = stored[0]
            else:
                source = CacheSource.EMPTY
                logger.warning("Venues: no cached data available, returning empty list")
                items = []

        self.last_source = source
        return items, source

    def _load_persisted(self) -> tuple[list[dict], float] | None:
        try:
            raw = self._store.get(self._key)
            if not raw:
                return None
            data = json.loads(raw)
        except Exception as e:
            logger.warning(f"Venues: ignoring unreadable persisted cache: {e}")
            return None

        if not isinstance(data, dict):
            return None
        venues = data.get("venues")
        timestamp = data.get("timestamp")
        if not isinstance(venues, list) or not venues:
            return None
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or timestamp <= 0:
            return None

        # Stored in epoch milliseconds, same blob format as the web client
        return venues, timestamp / 1000

    def _save_persisted(self, venues: list[dict], fetched_at: float) -> None:
        try:
            blob = json.dumps({"venues": venues, "timestamp": int(fetched_at * 1000)})
            self._store.set(self._key, blob)
        except Exception as e:
            logger.warning(f"Venues: failed to persist cache: {e}")


# Short-lived review lists keyed by venue
reviews_cache = TTLCache(default_ttl=300)
