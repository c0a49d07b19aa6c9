"""
Domain model for the OAuth credential held by one authenticated session.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Credential(BaseModel):
    """Access token, refresh token and the absolute instant the access token expires."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: datetime

    @field_validator("expires_at")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("expires_at must be timezone-aware")
        return value

    def needs_refresh(self, *, now: datetime, margin: timedelta) -> bool:
        """True once ``now`` is inside the safety margin before expiry."""
        return now >= self.expires_at - margin


__all__ = ["Credential"]
