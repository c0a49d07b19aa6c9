"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the album view schedulers
and the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
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


class GoogleSettings(BaseSettings):
    """OAuth client registration used for the Google Photos Library API."""

    client_id: str = Field(..., alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., alias="GOOGLE_REDIRECT_URI")


class OAuthSettings(BaseSettings):
    """OAuth flow and token lifecycle configuration."""

    state_ttl_seconds: int = Field(900, alias="OAUTH_STATE_TTL")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://www.googleapis.com/auth/photoslibrary.readonly",),
        alias="OAUTH_SCOPES",
    )
    refresh_margin_seconds: int = Field(
        60,
        alias="OAUTH_REFRESH_MARGIN_SECONDS",
        description="Refresh the access token this long before it actually expires.",
    )

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


class PhotosSettings(BaseSettings):
    """Paging and timeout knobs for the Photos Library API."""

    album_page_size: int = Field(50, alias="PHOTOS_ALBUM_PAGE_SIZE", ge=1, le=50)
    media_page_size: int = Field(50, alias="PHOTOS_MEDIA_PAGE_SIZE", ge=1, le=100)
    max_tail_pages: int = Field(
        5,
        alias="PHOTOS_MAX_TAIL_PAGES",
        ge=1,
        description="Upper bound on pages fetched by one tail sync when the high-water mark is not found.",
    )
    request_timeout_seconds: float = Field(10.0, alias="PHOTOS_REQUEST_TIMEOUT", gt=0)


class SlideshowSettings(BaseSettings):
    """Timer cadence for album views."""

    sync_interval_seconds: float = Field(30.0, alias="SLIDESHOW_SYNC_INTERVAL", gt=0)
    presentation_interval_seconds: float = Field(
        3.0, alias="SLIDESHOW_PRESENTATION_INTERVAL", gt=0
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting browsers back to the display after login.",
    )
    session_db_path: str = Field("data/sessions.db", alias="SESSION_DB_PATH")
    session_cookie_name: str = Field("slideshow_session", alias="SESSION_COOKIE_NAME")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    photos: PhotosSettings = Field(default_factory=PhotosSettings)
    slideshow: SlideshowSettings = Field(default_factory=SlideshowSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "OAuthSettings",
    "PhotosSettings",
    "SecuritySettings",
    "SlideshowSettings",
    "get_settings",
]
