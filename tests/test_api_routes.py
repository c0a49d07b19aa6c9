try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import anyio
import httpx
import pytest

from slideshow.clients.google_auth import OAuthTokenExchangeError
from slideshow.clients.sqlite_store import SQLiteStore
from slideshow.main import app
from slideshow.models.credential import Credential
from slideshow.schemas.photos import AlbumSummary, MediaItem, Page
from slideshow.services import AlbumViewRegistry, CredentialGuardRegistry, TokenCipherService


class DummyOAuthClient:
    def __init__(self) -> None:
        self.states: list[str] = []
        self.codes: list[str] = []
        self.refresh_error: Exception | None = None

    def build_authorization_url(self, state: str) -> str:
        self.states.append(state)
        return f"https://oauth.example.com/auth?state={state}"

    async def exchange_authorization_code(self, code: str) -> tuple[str, str, int]:
        self.codes.append(code)
        return ("access-token", "refresh-token", 3600)

    async def refresh_token(self, refresh_token: str) -> tuple[str, None, int]:
        if self.refresh_error is not None:
            raise self.refresh_error
        return ("refreshed-token", None, 3600)


class DummyPhotosClient:
    def __init__(self) -> None:
        self.tokens: list[str] = []

    async def list_albums_page(self, access_token, *, shared=False, page_token=None, page_size=50):
        self.tokens.append(access_token)
        if shared:
            return Page([AlbumSummary(id="b", title=""), AlbumSummary(id="c")], None)
        return Page([AlbumSummary(id="a", title="Holidays"), AlbumSummary(id="b", title="Family")], None)

    async def search_media_page(self, access_token, *, album_id, page_token=None, page_size=50):
        self.tokens.append(access_token)
        items = [
            MediaItem(
                id=item_id,
                base_url=f"https://lh3.example.com/{item_id}",
                width=640,
                height=480,
                creation_time=datetime(2024, 5, 1, tzinfo=timezone.utc),
            )
            for item_id in ("n2", "n1", "seen", "old")
        ]
        return Page(items, "page-2")


@pytest.fixture()
def api_overrides(tmp_path):
    from slideshow import dependencies

    oauth_client = DummyOAuthClient()
    photos_client = DummyPhotosClient()
    registry = CredentialGuardRegistry(
        SQLiteStore(str(tmp_path / "sessions.db")),
        TokenCipherService(secret="routes-secret"),
        oauth_client,
    )
    views = AlbumViewRegistry(sync_interval=60, presentation_interval=60)
    settings = dependencies.get_app_settings().model_copy(update={"frontend_base_url": None})

    app.dependency_overrides.update(
        {
            dependencies.get_google_oauth_client: lambda: oauth_client,
            dependencies.get_photos_client: lambda: photos_client,
            dependencies.get_credential_registry: lambda: registry,
            dependencies.get_album_view_registry: lambda: views,
            dependencies.get_app_settings: lambda: settings,
        }
    )

    yield oauth_client, photos_client, registry, settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def _signed_in(registry: CredentialGuardRegistry, *, expires_in: timedelta) -> str:
    return registry.start_session(
        Credential(
            access_token="access-token",
            refresh_token="refresh-token",
            expires_at=datetime.now(timezone.utc) + expires_in,
        )
    )


@pytest.mark.anyio
async def test_login_returns_authorization_url_as_json(api_overrides):
    oauth_client, *_ = api_overrides
    async with _client() as client:
        response = await client.get("/api/auth/google/login")

    assert response.status_code == 200
    data = response.json()
    assert data["authorization_url"].startswith("https://oauth.example.com/")
    assert data["state"] == oauth_client.states[0]


@pytest.mark.anyio
async def test_login_redirects_when_requested(api_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/google/login", params={"redirect": "true"})

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://oauth.example.com/auth")


@pytest.mark.anyio
async def test_callback_starts_session_cookie(api_overrides):
    oauth_client, _, registry, settings = api_overrides
    async with _client() as client:
        login = await client.get("/api/auth/google/login")
        state = parse_qs(urlparse(login.json()["authorization_url"]).query)["state"][0]

        response = await client.get(
            "/api/auth/google/callback", params={"state": state, "code": "auth-code"}
        )

    assert response.status_code == 200
    assert response.json() == {"status": "connected"}
    assert oauth_client.codes == ["auth-code"]
    session_id = response.cookies[settings.session_cookie_name]
    assert "access-token" not in session_id
    assert registry.guard_for(session_id).has_credential()


@pytest.mark.anyio
async def test_callback_rejects_tampered_state(api_overrides):
    oauth_client, *_ = api_overrides
    async with _client() as client:
        response = await client.get(
            "/api/auth/google/callback", params={"state": "forged", "code": "auth-code"}
        )

    assert response.status_code == 400
    assert oauth_client.codes == []


@pytest.mark.anyio
async def test_albums_without_session_is_unauthenticated(api_overrides):
    async with _client() as client:
        response = await client.get("/api/albums")

    assert response.status_code == 401
    assert response.json()["detail"] == "unauthenticated"


@pytest.mark.anyio
async def test_albums_lists_owned_and_shared_once(api_overrides):
    _, photos_client, registry, settings = api_overrides
    session_id = _signed_in(registry, expires_in=timedelta(hours=1))

    async with _client() as client:
        client.cookies.set(settings.session_cookie_name, session_id)
        response = await client.get("/api/albums")

    assert response.status_code == 200
    assert [album["id"] for album in response.json()] == ["a", "b", "c"]
    assert response.json()[1]["title"] == "Family"
    assert set(photos_client.tokens) == {"access-token"}


@pytest.mark.anyio
async def test_failed_refresh_reports_session_expired(api_overrides):
    oauth_client, photos_client, registry, settings = api_overrides
    oauth_client.refresh_error = OAuthTokenExchangeError("invalid_grant")
    session_id = _signed_in(registry, expires_in=timedelta(seconds=-30))

    async with _client() as client:
        client.cookies.set(settings.session_cookie_name, session_id)
        first = await client.get("/api/albums")
        second = await client.get("/api/albums/a")

    assert first.status_code == 401
    assert first.json()["detail"] == "session_expired"
    assert second.status_code == 401
    assert second.json()["detail"] == "session_expired"
    assert photos_client.tokens == []


@pytest.mark.anyio
async def test_album_tail_returns_items_newer_than_latest_id(api_overrides):
    _, _, registry, settings = api_overrides
    session_id = _signed_in(registry, expires_in=timedelta(hours=1))

    async with _client() as client:
        client.cookies.set(settings.session_cookie_name, session_id)
        trimmed = await client.get("/api/albums/album-1", params={"latestId": "seen"})
        full = await client.get("/api/albums/album-1")

    assert trimmed.status_code == 200
    body = trimmed.json()
    assert [item["id"] for item in body["newItems"]] == ["n2", "n1"]
    assert body["newItems"][0]["displayUrl"] == "https://lh3.example.com/n2=w640-h480"
    assert body["nextPageToken"] is None
    assert full.json()["nextPageToken"] == "page-2"
    assert len(full.json()["newItems"]) == 4


@pytest.mark.anyio
async def test_slideshow_lifecycle(api_overrides):
    _, _, registry, settings = api_overrides
    session_id = _signed_in(registry, expires_in=timedelta(hours=1))

    async with _client() as client:
        client.cookies.set(settings.session_cookie_name, session_id)
        missing = await client.get("/api/albums/album-1/slideshow/current")
        started = await client.post("/api/albums/album-1/slideshow")
        current = await client.get("/api/albums/album-1/slideshow/current")
        stopped = await client.delete("/api/albums/album-1/slideshow")
        stopped_again = await client.delete("/api/albums/album-1/slideshow")

    assert missing.status_code == 404
    assert started.status_code == 202
    assert started.json() == {"status": "running", "album_id": "album-1"}
    assert current.status_code == 200
    assert current.json()["albumId"] == "album-1"
    assert "url" in current.json()
    assert stopped.status_code == 200
    assert stopped_again.status_code == 404


@pytest.mark.anyio
async def test_logout_forgets_credential(api_overrides):
    _, _, registry, settings = api_overrides
    session_id = _signed_in(registry, expires_in=timedelta(hours=1))

    async with _client() as client:
        client.cookies.set(settings.session_cookie_name, session_id)
        response = await client.post("/api/auth/logout")

    assert response.status_code == 200
    assert not registry.guard_for(session_id).has_credential()


@pytest.mark.anyio
async def test_current_reports_expired_session_after_view_shut_down(api_overrides):
    oauth_client, _, registry, settings = api_overrides
    oauth_client.refresh_error = OAuthTokenExchangeError("invalid_grant")
    session_id = _signed_in(registry, expires_in=timedelta(seconds=-30))

    async with _client() as client:
        client.cookies.set(settings.session_cookie_name, session_id)
        started = await client.post("/api/albums/album-1/slideshow")
        await anyio.sleep(0.05)
        current = await client.get("/api/albums/album-1/slideshow/current")

    assert started.status_code == 202
    assert current.status_code == 401
    assert current.json()["detail"] == "session_expired"
    assert len(registry) == 0
