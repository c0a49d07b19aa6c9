"""Expose constructed client wrappers."""

from .google_auth import GoogleOAuthClient, OAuthStateEncoder
from .google_photos import GooglePhotosClient
from .sqlite_store import SQLiteStore

__all__ = [
    "GoogleOAuthClient",
    "GooglePhotosClient",
    "OAuthStateEncoder",
    "SQLiteStore",
]
