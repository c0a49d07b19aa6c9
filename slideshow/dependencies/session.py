"""
Request-scoped dependencies: settings, the caller's session and its sync engine.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from slideshow.clients import GooglePhotosClient
from slideshow.core.config import AppSettings, get_settings
from slideshow.services import CredentialGuard, CredentialGuardRegistry, IncrementalSyncEngine

from .clients import get_credential_registry, get_photos_client


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_session_id(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> Optional[str]:
    """Opaque session id from the session cookie, if any."""
    return request.cookies.get(settings.session_cookie_name) or None


def get_credential_guard(
    session_id: Annotated[Optional[str], Depends(get_session_id)],
    registry: Annotated[CredentialGuardRegistry, Depends(get_credential_registry)],
) -> CredentialGuard:
    """Guard for the caller's session; requests without a session are rejected."""
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated"
        )
    return registry.guard_for(session_id)


def get_sync_engine(
    guard: Annotated[CredentialGuard, Depends(get_credential_guard)],
    photos_client: Annotated[GooglePhotosClient, Depends(get_photos_client)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> IncrementalSyncEngine:
    """Sync engine bound to the caller's credential guard."""
    return IncrementalSyncEngine(photos_client, guard, settings.photos)


__all__ = [
    "get_app_settings",
    "get_credential_guard",
    "get_session_id",
    "get_sync_engine",
]
