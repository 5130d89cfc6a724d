"""
Application configuration models and helpers.

Settings are resolved once per process. The runtime environment is captured as
an explicit ``AppEnvironment`` value so request handlers never need to sniff
globals to decide how verbose an error response may be.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class AppEnvironment(str, Enum):
    """Runtime mode controlling error verbosity and production checks."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class YouTubeSettings(BaseSettings):
    """Configuration for the YouTube Data API."""

    model_config = SettingsConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("YOUTUBE_API_KEY", "VITE_YOUTUBE_API_KEY"),
        description="Server-side key. Insights fall back to cache when absent.",
    )
    region_code: str = Field("US", validation_alias="YOUTUBE_REGION_CODE")
    music_category_id: str = Field("10", validation_alias="YOUTUBE_MUSIC_CATEGORY_ID")
    max_results: int = Field(50, validation_alias="YOUTUBE_MAX_RESULTS")
    max_attempts: int = Field(3, validation_alias="YOUTUBE_MAX_ATTEMPTS")
    retry_delay_seconds: float = Field(1.0, validation_alias="YOUTUBE_RETRY_DELAY")


class SpotifySettings(BaseSettings):
    """Spotify OAuth application credentials."""

    model_config = SettingsConfigDict(populate_by_name=True)

    client_id: str = Field(..., validation_alias="SPOTIFY_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="SPOTIFY_CLIENT_SECRET")
    redirect_uri: str = Field(..., validation_alias="SPOTIFY_REDIRECT_URI")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("user-read-private", "user-read-email", "playlist-read-private"),
        validation_alias="SPOTIFY_SCOPES",
    )
    warm_up_on_startup: bool = Field(True, validation_alias="SPOTIFY_WARM_UP")
    market: str = Field("US", validation_alias="SPOTIFY_MARKET")
    backup_playlist_id: str = Field(
        "37i9dQZEVXbNG2KDcFcKOF",
        validation_alias="SPOTIFY_BACKUP_PLAYLIST_ID",
        description="Public playlist used when no featured playlist is available.",
    )
    max_attempts: int = Field(3, validation_alias="SPOTIFY_MAX_ATTEMPTS")
    retry_delay_seconds: float = Field(1.0, validation_alias="SPOTIFY_RETRY_DELAY")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class CacheSettings(BaseSettings):
    """Insights cache policy."""

    model_config = SettingsConfigDict(populate_by_name=True)

    ttl_ms: int = Field(3_600_000, validation_alias="YOUTUBE_CACHE_DURATION")
    collection: str = Field("youtube_trends", validation_alias="YOUTUBE_CACHE_COLLECTION")
    trends_ttl_ms: int = Field(3_600_000, validation_alias="TRENDS_CACHE_DURATION")
    trends_collection: str = Field("trends", validation_alias="TRENDS_CACHE_COLLECTION")


class StoreSettings(BaseSettings):
    """Document store backend selection."""

    model_config = SettingsConfigDict(populate_by_name=True)

    backend: str = Field("sqlite", validation_alias="DOCUMENT_STORE_BACKEND")
    sqlite_path: str = Field(
        "data/musicpulse.db", validation_alias="DOCUMENT_STORE_PATH"
    )
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )

    @field_validator("backend")
    @classmethod
    def _normalise_backend(cls, value: str) -> str:
        backend = value.strip().lower()
        if backend not in {"sqlite", "dynamodb"}:
            raise ValueError("DOCUMENT_STORE_BACKEND must be 'sqlite' or 'dynamodb'")
        return backend


class SecuritySettings(BaseSettings):
    """Session and token protection secrets."""

    model_config = SettingsConfigDict(populate_by_name=True)

    session_secret: Optional[str] = Field(None, validation_alias="SESSION_SECRET")
    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description="Secret used to derive the key for encrypting session tokens.",
    )
    session_max_age_seconds: int = Field(
        24 * 60 * 60, validation_alias="SESSION_MAX_AGE"
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: AppEnvironment = Field(
        AppEnvironment.DEVELOPMENT,
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV"),
    )
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    client_url: Optional[str] = Field(
        None,
        validation_alias="CLIENT_URL",
        description="Front-end origin allowed by CORS in production.",
    )
    youtube: YouTubeSettings = Field(default_factory=YouTubeSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalise_environment(cls, value: str | AppEnvironment) -> str | AppEnvironment:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _require_production_values(self) -> "AppSettings":
        if self.environment is AppEnvironment.PRODUCTION:
            missing = []
            if not self.security.session_secret:
                missing.append("SESSION_SECRET")
            if not self.client_url:
                missing.append("CLIENT_URL")
            if missing:
                raise ValueError(
                    "Missing required production environment variables: "
                    + ", ".join(missing)
                )
        return self

    @property
    def expose_error_details(self) -> bool:
        """Whether error payloads may carry the underlying exception message."""
        return self.environment is not AppEnvironment.PRODUCTION

    @property
    def allowed_origins(self) -> list[str]:
        if self.environment is AppEnvironment.PRODUCTION:
            return [self.client_url] if self.client_url else []
        return [self.client_url or "http://localhost:5173"]


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppEnvironment",
    "AppSettings",
    "CacheSettings",
    "SecuritySettings",
    "SpotifySettings",
    "StoreSettings",
    "YouTubeSettings",
    "get_settings",
]
