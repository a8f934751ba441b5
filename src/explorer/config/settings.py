"""Application settings loaded from environment."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly typed settings for the explorer services."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    pghost: Optional[str] = Field(default=None, alias="PGHOST")
    pgport: int = Field(default=5432, alias="PGPORT")
    pguser: Optional[str] = Field(default=None, alias="PGUSER")
    pgpassword: Optional[str] = Field(default=None, alias="PGPASSWORD")
    pgdatabase: Optional[str] = Field(default=None, alias="PGDATABASE")
    db_connect_timeout_seconds: int = Field(default=10, alias="DB_CONNECT_TIMEOUT_SECONDS")

    # Google Places
    google_places_api_key: Optional[str] = Field(default=None, alias="GOOGLE_PLACES_API_KEY")
    google_places_base_url: str = Field(
        default="https://maps.googleapis.com/maps/api/place",
        alias="GOOGLE_PLACES_BASE_URL",
    )

    # Eventbrite
    eventbrite_api_key: Optional[str] = Field(default=None, alias="EVENTBRITE_API_KEY")
    eventbrite_base_url: str = Field(
        default="https://www.eventbriteapi.com/v3",
        alias="EVENTBRITE_BASE_URL",
    )

    # Provider HTTP
    provider_timeout_seconds: float = Field(default=20.0, alias="PROVIDER_TIMEOUT_SECONDS")
    provider_max_retries: int = Field(default=3, alias="PROVIDER_MAX_RETRIES")

    # Search and cache policy
    nearby_default_radius_meters: int = Field(default=1000, alias="NEARBY_DEFAULT_RADIUS_METERS")
    text_search_cache_radius_meters: int = Field(
        default=5000, alias="TEXT_SEARCH_CACHE_RADIUS_METERS"
    )
    event_default_radius_meters: int = Field(default=10000, alias="EVENT_DEFAULT_RADIUS_METERS")
    event_cache_ttl_hours: int = Field(default=24, alias="EVENT_CACHE_TTL_HOURS")
    upsert_batch_size: int = Field(default=500, alias="UPSERT_BATCH_SIZE")

    # Runtime
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    def get_database_url(self) -> str:
        """Return a usable database URL or raise."""
        if self.database_url:
            return self.database_url

        if all([self.pghost, self.pguser, self.pgpassword, self.pgdatabase]):
            return (
                "postgresql://"
                f"{self.pguser}:{self.pgpassword}@{self.pghost}:{self.pgport}/"
                f"{self.pgdatabase}"
            )

        raise ValueError("DATABASE_URL or PG* env vars must be set")

    def has_database(self) -> bool:
        """Return True when database connection settings are present."""
        return bool(self.database_url or self.pghost)
