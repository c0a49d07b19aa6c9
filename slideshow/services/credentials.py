"""
Session credential storage and the guard that keeps access tokens fresh.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple, TypeVar

import httpx

from slideshow.clients.google_auth import OAuthTokenExchangeError
from slideshow.clients.sqlite_store import SQLiteStore
from slideshow.core.errors import SessionExpired, Unauthenticated
from slideshow.models.credential import Credential
from slideshow.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SAFETY_MARGIN = timedelta(seconds=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenRefresher(Protocol):
    async def refresh_token(self, refresh_token: str) -> Tuple[str, Optional[str], int]:
        ...


class CredentialStore:
    """Read/write the credential of one session, encrypted at rest."""

    _SORT_KEY = "oauth#google"

    def __init__(
        self, store: SQLiteStore, cipher: TokenCipherService, session_id: str
    ) -> None:
        self._store = store
        self._cipher = cipher
        self.session_id = session_id

    @property
    def _partition_key(self) -> str:
        return f"session#{self.session_id}"

    def get(self) -> Optional[Credential]:
        record = self._load()
        if not record or "expired_at" in record:
            return None

        try:
            expires_at = datetime.fromisoformat(record["expires_at"])
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            return Credential(
                access_token=self._cipher.decrypt(record["access_token_encrypted"]),
                refresh_token=self._cipher.decrypt(record["refresh_token_encrypted"]),
                expires_at=expires_at,
            )
        except (KeyError, TypeError, ValueError):
            logger.warning(
                "Stored credential is unreadable; treating session as signed out",
                extra={"session_id": self.session_id},
            )
            return None

    def is_expired(self) -> bool:
        """True once a refresh failure has replaced the credential with a marker."""
        record = self._load()
        return bool(record) and "expired_at" in record

    def set(self, credential: Credential) -> None:
        self._store.put_item(
            {
                "pk": self._partition_key,
                "sk": self._SORT_KEY,
                "provider": "google",
                "access_token_encrypted": self._cipher.encrypt(credential.access_token),
                "refresh_token_encrypted": self._cipher.encrypt(credential.refresh_token),
                "expires_at": credential.expires_at.isoformat(),
            }
        )

    def mark_expired(self, at: datetime) -> None:
        """Drop the tokens but remember that this session used to be signed in."""
        self._store.put_item(
            {
                "pk": self._partition_key,
                "sk": self._SORT_KEY,
                "provider": "google",
                "expired_at": at.isoformat(),
            }
        )

    def clear(self) -> None:
        self._store.delete_item(
            partition_key=self._partition_key, sort_key=self._SORT_KEY
        )

    def _load(self) -> Optional[Dict[str, Any]]:
        return self._store.get_item(
            partition_key=self._partition_key, sort_key=self._SORT_KEY
        )


class CredentialGuard:
    """Run upstream operations with an access token valid past the safety margin.

    A refresh failure clears the credential and is terminal for the session.
    Concurrent callers that find the token expiring share a single refresh.
    """

    def __init__(
        self,
        store: CredentialStore,
        refresher: TokenRefresher,
        *,
        safety_margin: timedelta = DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], datetime] = _utcnow,
        on_expired: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._margin = safety_margin
        self._clock = clock
        self._on_expired = on_expired
        self._inflight: Optional[asyncio.Future[Credential]] = None

    @property
    def session_id(self) -> str:
        return self._store.session_id

    @property
    def session_expired(self) -> bool:
        return self._store.is_expired()

    async def with_valid_token(self, operation: Callable[[str], Awaitable[T]]) -> T:
        """Execute ``operation(access_token)`` and return its result unchanged."""
        access_token = await self.valid_access_token()
        return await operation(access_token)

    async def valid_access_token(self) -> str:
        credential = self._store.get()
        if credential is None:
            if self._store.is_expired():
                raise SessionExpired("Session expired; sign in again.")
            raise Unauthenticated("No credential stored for this session.")

        if not credential.needs_refresh(now=self._clock(), margin=self._margin):
            return credential.access_token

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh(credential))
        refreshed = await asyncio.shield(self._inflight)
        return refreshed.access_token

    def signed_in(self, credential: Credential) -> None:
        """Store a credential obtained from a fresh login."""
        self._store.set(credential)

    def has_credential(self) -> bool:
        return self._store.get() is not None

    def sign_out(self) -> None:
        self._store.clear()

    async def _refresh(self, credential: Credential) -> Credential:
        try:
            refreshed_at = self._clock()
            try:
                access_token, rotated_refresh_token, expires_in = (
                    await self._refresher.refresh_token(credential.refresh_token)
                )
            except (OAuthTokenExchangeError, httpx.HTTPError) as exc:
                logger.warning(
                    "Token refresh failed; clearing session credential: %s",
                    exc,
                    extra={"session_id": self.session_id},
                )
                self._store.mark_expired(refreshed_at)
                if self._on_expired is not None:
                    self._on_expired(self.session_id)
                raise SessionExpired("Token refresh failed; sign in again.") from exc

            updated = Credential(
                access_token=access_token,
                refresh_token=rotated_refresh_token or credential.refresh_token,
                expires_at=refreshed_at + timedelta(seconds=expires_in),
            )
            self._store.set(updated)
            logger.info(
                "Refreshed access token",
                extra={"session_id": self.session_id, "expires_at": updated.expires_at.isoformat()},
            )
            return updated
        finally:
            self._inflight = None


class CredentialGuardRegistry:
    """Hand out one guard per signed-in session so refreshes are shared across requests.

    Only sessions holding a credential are cached. Guards are dropped when the
    session signs out or its refresh fails.
    """

    def __init__(
        self,
        store: SQLiteStore,
        cipher: TokenCipherService,
        refresher: TokenRefresher,
        *,
        safety_margin: timedelta = DEFAULT_SAFETY_MARGIN,
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._refresher = refresher
        self._margin = safety_margin
        self._guards: Dict[str, CredentialGuard] = {}

    def __len__(self) -> int:
        return len(self._guards)

    def guard_for(self, session_id: str) -> CredentialGuard:
        guard = self._guards.get(session_id)
        if guard is not None:
            return guard

        guard = self._build_guard(session_id)
        if guard.has_credential():
            self._guards[session_id] = guard
        return guard

    def start_session(self, credential: Credential) -> str:
        session_id = uuid.uuid4().hex
        guard = self._build_guard(session_id)
        guard.signed_in(credential)
        self._guards[session_id] = guard
        return session_id

    def end_session(self, session_id: str) -> None:
        guard = self._guards.pop(session_id, None) or self._build_guard(session_id)
        guard.sign_out()

    def _evict(self, session_id: str) -> None:
        self._guards.pop(session_id, None)

    def _build_guard(self, session_id: str) -> CredentialGuard:
        return CredentialGuard(
            CredentialStore(self._store, self._cipher, session_id),
            self._refresher,
            safety_margin=self._margin,
            on_expired=self._evict,
        )


__all__ = [
    "CredentialGuard",
    "CredentialGuardRegistry",
    "CredentialStore",
    "DEFAULT_SAFETY_MARGIN",
    "TokenRefresher",
]
