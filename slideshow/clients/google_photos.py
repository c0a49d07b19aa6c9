"""Google Photos Library API client wrapper.

Every method issues exactly one upstream request and returns one ``Page``.
Looping over pages belongs to the sync engine.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, TypeVar

import httpx

from slideshow.core.errors import MalformedResponse
from slideshow.schemas.photos import AlbumSummary, MediaItem, Page
from slideshow.utils.http import open_client, send_checked

T = TypeVar("T")


class GooglePhotosClient:
    """Fetch single pages of album and media listings."""

    BASE_URL = "https://photoslibrary.googleapis.com/v1"
    ALBUMS_URL = f"{BASE_URL}/albums"
    SHARED_ALBUMS_URL = f"{BASE_URL}/sharedAlbums"
    MEDIA_SEARCH_URL = f"{BASE_URL}/mediaItems:search"

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = http_client
        self._timeout = timeout

    async def list_albums_page(
        self,
        access_token: str,
        *,
        shared: bool = False,
        page_token: str | None = None,
        page_size: int = 50,
    ) -> Page[AlbumSummary]:
        """Fetch one page of the owned or shared album listing."""
        params: Dict[str, Any] = {"pageSize": page_size}
        if page_token:
            params["pageToken"] = page_token
        url = self.SHARED_ALBUMS_URL if shared else self.ALBUMS_URL

        async with open_client(self._http, timeout=self._timeout) as client:
            response = await send_checked(
                client.get,
                url,
                params=params,
                headers=self._auth_headers(access_token),
            )

        items_key = "sharedAlbums" if shared else "albums"
        return self._parse_page(response, items_key, AlbumSummary.from_api)

    async def search_media_page(
        self,
        access_token: str,
        *,
        album_id: str,
        page_token: str | None = None,
        page_size: int = 50,
    ) -> Page[MediaItem]:
        """Fetch one page of an album's media items, newest first."""
        body: Dict[str, Any] = {"albumId": album_id, "pageSize": page_size}
        if page_token:
            body["pageToken"] = page_token

        async with open_client(self._http, timeout=self._timeout) as client:
            response = await send_checked(
                client.post,
                self.MEDIA_SEARCH_URL,
                json=body,
                headers=self._auth_headers(access_token),
            )

        return self._parse_page(response, "mediaItems", MediaItem.from_api)

    @staticmethod
    def _auth_headers(access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    @staticmethod
    def _parse_page(
        response: httpx.Response,
        items_key: str,
        parse_item: Callable[[Dict[str, Any]], T],
    ) -> Page[T]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponse("Upstream returned a non-JSON body.") from exc
        if not isinstance(payload, dict):
            raise MalformedResponse(f"Expected a JSON object, got {type(payload).__name__}.")

        # Empty albums come back as {} without the items key.
        raw_items = payload.get(items_key) or []
        if not isinstance(raw_items, list):
            raise MalformedResponse(f"Expected '{items_key}' to be a list.")

        items: List[T] = [parse_item(raw) for raw in raw_items]
        return Page(items=items, next_page_token=payload.get("nextPageToken") or None)


__all__ = ["GooglePhotosClient"]
