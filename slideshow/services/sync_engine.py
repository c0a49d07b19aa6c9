"""
Incremental synchronization of album listings and album contents.

Two fetch modes are supported:

* full listing: drain the owned and shared album listings concurrently and
  merge them by id.
* tail sync: walk an album newest-first until the item recorded as the
  high-water mark by the previous sync shows up, returning only what is newer.

Nothing here mutates shared state. Every method returns new values and the
caller commits them once the whole pass has succeeded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, Collection, Hashable, Iterable, List, Optional, Tuple, TypeVar

from slideshow.clients.google_photos import GooglePhotosClient
from slideshow.core.config import PhotosSettings
from slideshow.schemas.photos import AlbumSummary, MediaItem, Page
from slideshow.services.credentials import CredentialGuard

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SyncGap:
    """Pages between items prepended by a capped tail sync and the previous mark.

    Items fetched at ``page_token`` belong right before ``anchor_id`` in the
    collection.
    """

    page_token: str
    anchor_id: str


@dataclass(frozen=True)
class SyncCursor:
    """Per-album sync position.

    ``high_water_mark_id`` is the newest item known after the last completed
    sync. ``page_token`` points at pages older than anything held, left by a
    capped first sync. ``gaps`` are stretches newer than an earlier mark that a
    capped tail sync skipped over.
    """

    high_water_mark_id: Optional[str] = None
    page_token: Optional[str] = None
    gaps: Tuple[SyncGap, ...] = ()


@dataclass(frozen=True)
class TailSyncResult:
    new_items: Tuple[MediaItem, ...]
    cursor: SyncCursor
    pages_fetched: int
    found_high_water_mark: bool


@dataclass(frozen=True)
class GapFillResult:
    anchor_id: Optional[str]
    items: Tuple[MediaItem, ...]
    cursor: SyncCursor


def merge_by_id(
    *sources: Iterable[T], key: Callable[[T], Hashable] = lambda item: item.id
) -> List[T]:
    """Concatenate ``sources`` keeping the first occurrence of every id."""
    seen: set = set()
    merged: List[T] = []
    for source in sources:
        for item in source:
            item_id = key(item)
            if item_id in seen:
                continue
            seen.add(item_id)
            merged.append(item)
    return merged


def trim_before(items: List[MediaItem], known_id: Optional[str]) -> Tuple[List[MediaItem], bool]:
    """Return the items strictly before ``known_id`` and whether it was present."""
    if known_id is None:
        return items, False
    for index, item in enumerate(items):
        if item.id == known_id:
            return items[:index], True
    return items, False


def insert_before(
    items: Iterable[MediaItem], anchor_id: Optional[str], inserted: Iterable[MediaItem]
) -> List[MediaItem]:
    """Place ``inserted`` right before ``anchor_id``, or at the end when it is absent.

    Ids already present in ``items`` keep their current position.
    """
    current = list(items)
    known = {item.id for item in current}
    fresh = merge_by_id(item for item in inserted if item.id not in known)
    for index, item in enumerate(current):
        if item.id == anchor_id:
            return current[:index] + fresh + current[index:]
    return current + fresh


class IncrementalSyncEngine:
    """Drive single-page fetches into album lists and incremental album updates."""

    def __init__(
        self,
        photos_client: GooglePhotosClient,
        guard: CredentialGuard,
        settings: PhotosSettings | None = None,
    ) -> None:
        self._photos = photos_client
        self._guard = guard
        self._settings = settings or PhotosSettings()

    async def list_albums(self) -> List[AlbumSummary]:
        """Full listing of owned and shared albums, each album id once."""
        owned, shared = await asyncio.gather(
            self._drain_albums(shared=False),
            self._drain_albums(shared=True),
        )
        albums = merge_by_id(owned, shared)
        logger.info(
            "Listed albums",
            extra={"owned": len(owned), "shared": len(shared), "merged": len(albums)},
        )
        return albums

    async def _drain_albums(self, *, shared: bool) -> List[AlbumSummary]:
        collected: List[AlbumSummary] = []
        page_token: Optional[str] = None
        while True:
            page = await self._guard.with_valid_token(
                lambda token: self._photos.list_albums_page(
                    token,
                    shared=shared,
                    page_token=page_token,
                    page_size=self._settings.album_page_size,
                )
            )
            collected = merge_by_id(collected, page.items)
            if not page.next_page_token:
                return collected
            page_token = page.next_page_token

    async def tail_sync(self, album_id: str, cursor: SyncCursor) -> TailSyncResult:
        """Fetch the items added to ``album_id`` since ``cursor`` was recorded.

        Stops at the first page containing the high-water mark, when pagination
        runs out, or after ``max_tail_pages`` pages. Raises on any page failure;
        the caller's cursor is then still the one to retry with.
        """
        accumulated: List[MediaItem] = []
        page_token: Optional[str] = None
        pages_fetched = 0
        found = False

        while pages_fetched < self._settings.max_tail_pages:
            page = await self._fetch_media_page(album_id, page_token)
            pages_fetched += 1

            fresh, found = trim_before(page.items, cursor.high_water_mark_id)
            accumulated.extend(fresh)
            page_token = page.next_page_token
            if found or not page_token:
                break

        new_items = tuple(merge_by_id(accumulated))

        next_page_token = cursor.page_token
        gaps = cursor.gaps
        if found:
            logger.debug("High-water mark found", extra={"album_id": album_id})
        elif cursor.high_water_mark_id is None:
            # First sync: whatever the cap left unread is older than all of it.
            next_page_token = page_token
        elif page_token:
            # Capped before reaching the mark: the rest is newer than the mark.
            gaps = (SyncGap(page_token, cursor.high_water_mark_id),) + gaps
        else:
            # The whole listing was read and the mark is no longer in it.
            next_page_token = None
            gaps = ()

        next_cursor = SyncCursor(
            high_water_mark_id=new_items[0].id if new_items else cursor.high_water_mark_id,
            page_token=next_page_token,
            gaps=gaps,
        )
        logger.debug(
            "Tail sync finished",
            extra={
                "album_id": album_id,
                "pages": pages_fetched,
                "new_items": len(new_items),
                "found_mark": found,
            },
        )
        return TailSyncResult(
            new_items=new_items,
            cursor=next_cursor,
            pages_fetched=pages_fetched,
            found_high_water_mark=found,
        )

    async def fill_gap(self, album_id: str, cursor: SyncCursor) -> GapFillResult:
        """Fetch one page of the newest gap in ``cursor``.

        The gap closes once its anchor shows up or pagination runs out.
        """
        if not cursor.gaps:
            return GapFillResult(anchor_id=None, items=(), cursor=cursor)
        gap, rest = cursor.gaps[0], cursor.gaps[1:]
        page = await self._fetch_media_page(album_id, gap.page_token)
        items, found = trim_before(page.items, gap.anchor_id)
        if not found and page.next_page_token:
            rest = (replace(gap, page_token=page.next_page_token),) + rest
        return GapFillResult(
            anchor_id=gap.anchor_id,
            items=tuple(items),
            cursor=replace(cursor, gaps=rest),
        )

    async def backfill(
        self,
        album_id: str,
        cursor: SyncCursor,
        known_ids: Collection[str] = (),
    ) -> Tuple[Tuple[MediaItem, ...], SyncCursor]:
        """Fetch one older page at ``cursor.page_token``.

        Backfill ends early when a page brings nothing beyond ``known_ids``.
        """
        if not cursor.page_token:
            return (), cursor
        page = await self._fetch_media_page(album_id, cursor.page_token)
        known = set(known_ids)
        unseen = [item for item in page.items if item.id not in known]
        next_page_token = page.next_page_token
        if page.items and not unseen:
            next_page_token = None
        return tuple(unseen), replace(cursor, page_token=next_page_token)

    async def tail_page(
        self,
        album_id: str,
        known_latest_id: Optional[str] = None,
        page_token: Optional[str] = None,
    ) -> Page[MediaItem]:
        """One page of ``album_id`` trimmed at ``known_latest_id`` for stateless callers."""
        page = await self._fetch_media_page(album_id, page_token)
        items, found = trim_before(page.items, known_latest_id)
        if found:
            return Page(items=items, next_page_token=None)
        return page

    async def _fetch_media_page(
        self, album_id: str, page_token: Optional[str]
    ) -> Page[MediaItem]:
        return await self._guard.with_valid_token(
            lambda token: self._photos.search_media_page(
                token,
                album_id=album_id,
                page_token=page_token,
                page_size=self._settings.media_page_size,
            )
        )


__all__ = [
    "GapFillResult",
    "IncrementalSyncEngine",
    "SyncCursor",
    "SyncGap",
    "TailSyncResult",
    "insert_before",
    "merge_by_id",
    "trim_before",
]
