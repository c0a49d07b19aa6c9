"""
FastAPI routes for the album slideshow.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from slideshow.clients.google_auth import InvalidOAuthState, OAuthTokenExchangeError
from slideshow.core.errors import (
    MalformedResponse,
    SessionExpired,
    SlideshowError,
    Unauthenticated,
    UpstreamError,
)
from slideshow.dependencies import (
    get_album_view_registry,
    get_app_settings,
    get_credential_registry,
    get_google_oauth_client,
    get_oauth_state_encoder,
    get_session_id,
    get_sync_engine,
)
from slideshow.models.credential import Credential
from slideshow.schemas import (
    AlbumSummary,
    AuthorizationUrlResponse,
    MediaItemOut,
    OAuthCallbackPayload,
    PresentationResponse,
    TailPageResponse,
)
from slideshow.services import AlbumViewRegistry, IncrementalSyncEngine

router = APIRouter()
logger = logging.getLogger(__name__)


def _as_http_exception(exc: SlideshowError) -> HTTPException:
    """Translate core errors into responses the display can act on."""
    if isinstance(exc, SessionExpired):
        return HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="session_expired")
    if isinstance(exc, Unauthenticated):
        return HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="unauthenticated")
    if isinstance(exc, (UpstreamError, MalformedResponse)):
        logger.warning("Upstream failure while serving request: %s", exc)
        return HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail="upstream_error")
    return HTTPException(status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail=str(exc))


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/google/login", status_code=HTTPStatus.OK)
async def start_google_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Google consent screen.",
    ),
) -> Any:
    """Kick off the OAuth flow by generating a state token and authorization URL."""
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = oauth_client.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return AuthorizationUrlResponse(authorization_url=authorization_url, state=state)


@router.get("/auth/google/callback", status_code=HTTPStatus.OK)
async def handle_google_oauth_callback(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    registry: Annotated[Any, Depends(get_credential_registry)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str = Query(..., description="OAuth state token."),
    code: str = Query(..., description="Authorization code returned by Google."),
) -> Response:
    """Complete the OAuth exchange and start a server-side session."""
    payload = OAuthCallbackPayload(state=state, code=code)
    try:
        state_data = state_encoder.decode(payload.state)
        issued_at = datetime.fromisoformat(state_data["issued_at"])
    except (InvalidOAuthState, KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Invalid OAuth state token."
        ) from exc

    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    now = datetime.now(timezone.utc)
    if now - issued_at > timedelta(seconds=settings.oauth.state_ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    try:
        (
            access_token,
            refresh_token,
            expires_in,
        ) = await oauth_client.exchange_authorization_code(payload.code)
    except OAuthTokenExchangeError as exc:
        logger.warning("Authorization code exchange failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc

    session_id = registry.start_session(
        Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=expires_in),
        )
    )
    logger.info("Started authenticated session")

    response: Response
    if settings.frontend_base_url and _wants_html(request):
        response = RedirectResponse(
            url=str(settings.frontend_base_url),
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )
    else:
        response = JSONResponse({"status": "connected"})
    response.set_cookie(
        settings.session_cookie_name,
        session_id,
        httponly=True,
        samesite="lax",
        secure=settings.environment != "development",
    )
    return response


@router.post("/auth/logout", status_code=HTTPStatus.OK)
async def logout(
    response: Response,
    session_id: Annotated[Optional[str], Depends(get_session_id)],
    registry: Annotated[Any, Depends(get_credential_registry)],
    views: Annotated[AlbumViewRegistry, Depends(get_album_view_registry)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Forget the session credential and stop its slideshows."""
    if session_id:
        await views.stop_session(session_id)
        registry.end_session(session_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"status": "signed_out"}


@router.get("/albums", response_model=List[AlbumSummary])
async def list_albums(
    engine: Annotated[IncrementalSyncEngine, Depends(get_sync_engine)],
) -> List[AlbumSummary]:
    """Owned and shared albums, each listed once."""
    try:
        return await engine.list_albums()
    except SlideshowError as exc:
        raise _as_http_exception(exc) from exc


@router.get("/albums/{album_id}")
async def album_tail_sync(
    album_id: str,
    engine: Annotated[IncrementalSyncEngine, Depends(get_sync_engine)],
    latest_id: Optional[str] = Query(
        default=None,
        alias="latestId",
        description="Newest media item id the caller already has.",
    ),
    next_page: Optional[str] = Query(
        default=None,
        alias="nextPage",
        description="Page token from a previous response.",
    ),
) -> dict:
    """One page of an album, trimmed to the items newer than ``latestId``."""
    try:
        page = await engine.tail_page(album_id, known_latest_id=latest_id, page_token=next_page)
    except SlideshowError as exc:
        raise _as_http_exception(exc) from exc

    body = TailPageResponse(
        new_items=[MediaItemOut.from_item(item) for item in page.items],
        next_page_token=page.next_page_token,
    )
    return body.model_dump(mode="json", by_alias=True)


@router.post("/albums/{album_id}/slideshow", status_code=HTTPStatus.ACCEPTED)
async def start_slideshow(
    album_id: str,
    session_id: Annotated[Optional[str], Depends(get_session_id)],
    engine: Annotated[IncrementalSyncEngine, Depends(get_sync_engine)],
    views: Annotated[AlbumViewRegistry, Depends(get_album_view_registry)],
) -> dict:
    """Start (or keep) the background slideshow for an album."""
    view = views.start(session_id, album_id, engine)
    return {"status": "running", "album_id": view.album_id}


@router.get("/albums/{album_id}/slideshow/current")
async def current_presentation(
    album_id: str,
    session_id: Annotated[Optional[str], Depends(get_session_id)],
    views: Annotated[AlbumViewRegistry, Depends(get_album_view_registry)],
    credentials: Annotated[Any, Depends(get_credential_registry)],
) -> dict:
    """The URL the display should render right now."""
    view = views.get(session_id or "", album_id)
    if view is None:
        guard = credentials.guard_for(session_id) if session_id else None
        if guard is None or not guard.has_credential():
            if guard is not None and guard.session_expired:
                raise _as_http_exception(SessionExpired("Session expired."))
            raise _as_http_exception(Unauthenticated("Not signed in."))
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Slideshow not running.")

    body = PresentationResponse(
        album_id=album_id,
        url=view.current_presentation_url,
        item_count=len(view.items),
    )
    return body.model_dump(mode="json", by_alias=True)


@router.delete("/albums/{album_id}/slideshow", status_code=HTTPStatus.OK)
async def stop_slideshow(
    album_id: str,
    session_id: Annotated[Optional[str], Depends(get_session_id)],
    views: Annotated[AlbumViewRegistry, Depends(get_album_view_registry)],
) -> dict:
    """Tear down an album's slideshow timers."""
    stopped = await views.stop(session_id or "", album_id)
    if not stopped:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Slideshow not running.")
    return {"status": "stopped"}
