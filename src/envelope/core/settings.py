"""Application settings and configuration.

This module defines all configuration options for the Envelope backend.
Settings are loaded from environment variables with sensible defaults and are
immutable once built; components receive the instance through their
constructors instead of importing a module-level object.
"""

import string
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SIXTY_DAYS_SECONDS = 60 * 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or a `.env` file, or by
    passing field values directly (tests do this).
    """

    # Application metadata
    app_name: str = Field(default="Envelope", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Database configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./envelope.db",
        alias="DATABASE_URL",
    )
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for device credentials; unset keeps them in process memory
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Request pipeline
    request_timeout_seconds: float = Field(default=20.0, gt=0, alias="REQUEST_TIMEOUT_SECONDS")

    # Device credentials
    credential_ttl_seconds: int = Field(default=SIXTY_DAYS_SECONDS, alias="CREDENTIAL_TTL_SECONDS")
    token_length: int = Field(default=20, ge=20, le=32, alias="TOKEN_LENGTH")
    token_alphabet: str = Field(default=string.ascii_letters, alias="TOKEN_ALPHABET")

    # Region gate
    working_region: str = Field(default="Uttarakhand", alias="WORKING_REGION")
    region_gate_enabled: bool = Field(default=True, alias="REGION_GATE_ENABLED")
    region_lookup_url: str = Field(
        default="https://ipapi.co/{ip}/region/",
        alias="REGION_LOOKUP_URL",
    )
    region_lookup_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        alias="REGION_LOOKUP_TIMEOUT_SECONDS",
    )

    # Feed pagination
    feed_default_limit: int = Field(default=20, gt=0, alias="FEED_DEFAULT_LIMIT")
    feed_max_limit: int = Field(default=100, gt=0, alias="FEED_MAX_LIMIT")

    # CORS configuration for client access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_methods: list[str] = Field(default=["GET", "POST", "OPTIONS"], alias="CORS_ALLOW_METHODS")
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("token_alphabet")
    @classmethod
    def _letters_only(cls, value: str) -> str:
        if not value or not value.isalpha():
            raise ValueError("token alphabet must be a non-empty string of letters")
        return "".join(dict.fromkeys(value))

    @property
    def credential_ttl(self) -> int | None:
        """Return the credential TTL in seconds, or None when credentials never expire."""
        if self.credential_ttl_seconds <= 0:
            return None
        return self.credential_ttl_seconds


@lru_cache
def get_settings() -> Settings:
    """Build the process settings once."""
    return Settings()
