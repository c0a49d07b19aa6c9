"""
Error taxonomy shared by the credential guard, the sync engine and the API layer.
"""

from __future__ import annotations

from typing import Optional


class SlideshowError(Exception):
    """Base class for failures surfaced by the slideshow core."""


class Unauthenticated(SlideshowError):
    """Raised when no credential is stored for the session."""


class SessionExpired(SlideshowError):
    """Raised when the refresh token exchange failed and the credential was cleared."""


class UpstreamError(SlideshowError):
    """Raised for non-success upstream responses, timeouts and transport failures."""

    def __init__(self, status: Optional[int], body: str) -> None:
        super().__init__(f"Upstream request failed (status={status}): {body}")
        self.status = status
        self.body = body


class MalformedResponse(SlideshowError):
    """Raised when upstream answered successfully but the body is unusable."""


__all__ = [
    "MalformedResponse",
    "SessionExpired",
    "SlideshowError",
    "Unauthenticated",
    "UpstreamError",
]
