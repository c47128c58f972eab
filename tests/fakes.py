"""Test doubles shared across test modules."""


class MemoryStore:
    """In-memory stand-in for JsonFileStore."""

    def __init__(self, data: dict[str, str] | None = None):
        self.data = dict(data or {})
        self.writes = 0

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.writes += 1
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)


class FakeClock:
    """Manually advanced wall clock in epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
