"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_album_view_registry,
    get_credential_registry,
    get_google_oauth_client,
    get_oauth_state_encoder,
    get_photos_client,
    get_sqlite_store,
    get_token_cipher_service,
)
from .session import (
    get_app_settings,
    get_credential_guard,
    get_session_id,
    get_sync_engine,
)

__all__ = [
    "get_album_view_registry",
    "get_app_settings",
    "get_credential_guard",
    "get_credential_registry",
    "get_google_oauth_client",
    "get_oauth_state_encoder",
    "get_photos_client",
    "get_session_id",
    "get_sqlite_store",
    "get_sync_engine",
    "get_token_cipher_service",
]
