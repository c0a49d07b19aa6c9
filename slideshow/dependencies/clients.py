"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from datetime import timedelta
from functools import lru_cache

from slideshow.clients import (
    GoogleOAuthClient,
    GooglePhotosClient,
    OAuthStateEncoder,
    SQLiteStore,
)
from slideshow.core.config import get_settings
from slideshow.services import (
    AlbumViewRegistry,
    CredentialGuardRegistry,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Google client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.google.client_secret)


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(
        settings.google,
        settings.oauth,
        timeout=settings.photos.request_timeout_seconds,
    )


@lru_cache()
def get_photos_client() -> GooglePhotosClient:
    """Provide the Photos Library page fetcher."""
    settings = _settings()
    return GooglePhotosClient(timeout=settings.photos.request_timeout_seconds)


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide the server-side session store."""
    settings = _settings()
    return SQLiteStore(settings.session_db_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_credential_registry() -> CredentialGuardRegistry:
    """Provide the per-session credential guards."""
    settings = _settings()
    return CredentialGuardRegistry(
        store=get_sqlite_store(),
        cipher=get_token_cipher_service(),
        refresher=get_google_oauth_client(),
        safety_margin=timedelta(seconds=settings.oauth.refresh_margin_seconds),
    )


@lru_cache()
def get_album_view_registry() -> AlbumViewRegistry:
    """Provide the process-wide registry of running slideshows."""
    settings = _settings()
    return AlbumViewRegistry(
        sync_interval=settings.slideshow.sync_interval_seconds,
        presentation_interval=settings.slideshow.presentation_interval_seconds,
    )


__all__ = [
    "get_album_view_registry",
    "get_credential_registry",
    "get_google_oauth_client",
    "get_oauth_state_encoder",
    "get_photos_client",
    "get_sqlite_store",
    "get_token_cipher_service",
]
