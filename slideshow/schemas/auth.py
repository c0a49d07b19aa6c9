"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Query parameters Google sends back to complete the OAuth exchange."""

    code: str = Field(..., description="Authorization code returned by Google OAuth.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class AuthorizationUrlResponse(BaseModel):
    """Consent URL handed to clients that do not follow redirects."""

    authorization_url: str
    state: str


__all__ = ["AuthorizationUrlResponse", "OAuthCallbackPayload"]
