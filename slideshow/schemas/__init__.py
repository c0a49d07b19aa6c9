"""Public schema exports."""

from .auth import AuthorizationUrlResponse, OAuthCallbackPayload
from .photos import (
    AlbumSummary,
    MediaItem,
    MediaItemOut,
    Page,
    PresentationResponse,
    TailPageResponse,
)

__all__ = [
    "AlbumSummary",
    "AuthorizationUrlResponse",
    "MediaItem",
    "MediaItemOut",
    "OAuthCallbackPayload",
    "Page",
    "PresentationResponse",
    "TailPageResponse",
]
