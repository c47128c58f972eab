"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Bot configuration from environment variables."""

    # Bot
    bot_token: str = Field(..., alias="BOT_TOKEN")

    # Database
    db_host: str = Field(default="db", alias="DB_HOST")
    db_port: int = Field(default=5432, alias="DB_PORT")
    db_name: str = Field(default="bowling_directory", alias="DB_NAME")
    db_user: str = Field(default="postgres", alias="DB_USER")
    db_password: str = Field(..., alias="DB_PASSWORD")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_echo: bool = Field(default=False, alias="DB_ECHO")

    # Default admin (for initial setup)
    default_admin_id: int | None = Field(default=None, alias="DEFAULT_ADMIN_ID")

    # Directory backend
    api_url: str = Field(default="http://localhost:5000", alias="API_URL")
    api_token: str | None = Field(default=None, alias="API_TOKEN")
    api_timeout_seconds: int = Field(default=30, alias="API_TIMEOUT_SECONDS")

    # Venue cache
    venue_cache_ttl_hours: int = Field(default=8, alias="VENUE_CACHE_TTL_HOURS")
    venue_cache_version: str = Field(default="v4", alias="VENUE_CACHE_VERSION")
    cache_dir: str = Field(default="data/cache", alias="CACHE_DIR")

    # Timing settings
    cache_warmup_minutes: int = Field(default=30, alias="CACHE_WARMUP_MINUTES")

    # Search behaviour
    city_min_results: int = Field(default=10, alias="CITY_MIN_RESULTS")
    proximity_radius_miles: int = Field(default=100, alias="PROXIMITY_RADIUS_MILES")
    proximity_limit: int = Field(default=9, alias="PROXIMITY_LIMIT")

    @property
    def database_url(self) -> str:
        """Build async PostgreSQL connection string."""
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def venue_cache_key(self) -> str:
        """Persisted snapshot key; bumping the version orphans old snapshots."""
        return f"bowlingalleys_venues_cache_{self.venue_cache_version}"

    @property
    def venue_cache_ttl(self) -> int:
        """Venue snapshot time-to-live in seconds."""
        return self.venue_cache_ttl_hours * 60 * 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Singleton instance
settings = Settings()
