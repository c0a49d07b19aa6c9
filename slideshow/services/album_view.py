"""
Album views: the sync timer and presentation timer behind one slideshow.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from slideshow.core.errors import (
    MalformedResponse,
    SessionExpired,
    SlideshowError,
    Unauthenticated,
    UpstreamError,
)
from slideshow.schemas.photos import MediaItem
from slideshow.services.selection import select_index
from slideshow.services.sync_engine import (
    IncrementalSyncEngine,
    SyncCursor,
    insert_before,
    merge_by_id,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresentationState:
    current_item_url: Optional[str] = None


class AlbumView:
    """Keep one album's working collection fresh and pick what to show next.

    The collection is an immutable tuple replaced wholesale by each completed
    sync, so the presentation timer always samples a consistent snapshot.
    At most one sync per view is in flight; ticks that fire meanwhile are
    skipped. A session error shuts the view down for good.
    """

    def __init__(
        self,
        album_id: str,
        engine: IncrementalSyncEngine,
        *,
        sync_interval: float = 30.0,
        presentation_interval: float = 3.0,
        rng: random.Random | None = None,
        on_session_error: Optional[Callable[["AlbumView"], None]] = None,
    ) -> None:
        self.album_id = album_id
        self._engine = engine
        self._sync_interval = sync_interval
        self._presentation_interval = presentation_interval
        self._rng = rng or random.Random()
        self._on_session_error = on_session_error

        self._items: Tuple[MediaItem, ...] = ()
        self._cursor = SyncCursor()
        self._presentation = PresentationState()
        self._sync_task: Optional[asyncio.Task] = None
        self._timers: list[asyncio.Task] = []
        self._ticks: set[asyncio.Task] = set()
        self._closed = False
        self.session_error: Optional[SlideshowError] = None

    @property
    def items(self) -> Tuple[MediaItem, ...]:
        return self._items

    @property
    def cursor(self) -> SyncCursor:
        return self._cursor

    @property
    def presentation(self) -> PresentationState:
        return self._presentation

    @property
    def current_presentation_url(self) -> Optional[str]:
        return self._presentation.current_item_url

    @property
    def syncing(self) -> bool:
        return self._sync_task is not None and not self._sync_task.done()

    @property
    def running(self) -> bool:
        """True while any timer, tick or sync task of this view is alive."""
        tasks = [*self._timers, *self._ticks]
        return self.syncing or any(not task.done() for task in tasks)

    async def sync_once(self) -> bool:
        """Run one sync pass. Returns ``False`` when skipped because one is running."""
        if self._closed or self.session_error is not None:
            return False
        if self.syncing:
            logger.debug("Sync already in flight; skipping tick", extra={"album_id": self.album_id})
            return False

        self._sync_task = asyncio.create_task(self._sync_pass())
        try:
            await asyncio.shield(self._sync_task)
        except asyncio.CancelledError:
            if self._closed:
                return False
            raise
        return True

    async def _sync_pass(self) -> None:
        cursor = self._cursor
        gap_anchor: Optional[str] = None
        gap_items: Tuple[MediaItem, ...] = ()
        older: Tuple[MediaItem, ...] = ()
        try:
            result = await self._engine.tail_sync(self.album_id, cursor)
            next_cursor = result.cursor
            if next_cursor.gaps:
                filled = await self._engine.fill_gap(self.album_id, next_cursor)
                gap_anchor, gap_items, next_cursor = filled.anchor_id, filled.items, filled.cursor
            elif next_cursor.page_token:
                known = {item.id for item in self._items}
                known.update(item.id for item in result.new_items)
                older, next_cursor = await self._engine.backfill(
                    self.album_id, next_cursor, known_ids=known
                )
        except (UpstreamError, MalformedResponse) as exc:
            logger.warning(
                "Album sync failed; keeping previous collection: %s",
                exc,
                extra={"album_id": self.album_id},
            )
            return
        except (Unauthenticated, SessionExpired) as exc:
            logger.error(
                "Album view shut down; session needs to sign in again",
                extra={"album_id": self.album_id},
            )
            self.session_error = exc
            self._shut_down()
            return

        if self._closed:
            return
        self._commit(
            result.new_items,
            next_cursor,
            older_items=older,
            gap_anchor=gap_anchor,
            gap_items=gap_items,
        )

    def _commit(
        self,
        new_items: Tuple[MediaItem, ...],
        cursor: SyncCursor,
        *,
        older_items: Tuple[MediaItem, ...] = (),
        gap_anchor: Optional[str] = None,
        gap_items: Tuple[MediaItem, ...] = (),
    ) -> None:
        items = merge_by_id(new_items, self._items, older_items)
        if gap_items:
            items = insert_before(items, gap_anchor, gap_items)
        self._items = tuple(items)
        self._cursor = cursor
        if new_items or older_items or gap_items:
            logger.info(
                "Album collection updated",
                extra={
                    "album_id": self.album_id,
                    "new_items": len(new_items),
                    "older_items": len(older_items),
                    "gap_items": len(gap_items),
                    "total": len(self._items),
                },
            )
        if self._presentation.current_item_url is None and self._items:
            self._presentation = PresentationState(self._items[0].display_url)

    def present_next(self) -> Optional[str]:
        """Advance the presentation; fewer than two items keeps the current frame."""
        snapshot = self._items
        if len(snapshot) < 2:
            return self._presentation.current_item_url
        index = select_index(len(snapshot), self._rng.random())
        self._presentation = PresentationState(snapshot[index].display_url)
        return self._presentation.current_item_url

    def start(self) -> None:
        """Start both timers. The first sync runs immediately."""
        if self._timers or self._closed:
            return
        self._timers = [
            asyncio.create_task(self._sync_loop(), name=f"sync:{self.album_id}"),
            asyncio.create_task(self._presentation_loop(), name=f"present:{self.album_id}"),
        ]

    async def stop(self) -> None:
        """Cancel both timers and any in-flight sync; late results are dropped."""
        self._closed = True
        tasks = [*self._timers, *self._ticks]
        if self._sync_task is not None and not self._sync_task.done():
            tasks.append(self._sync_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._timers = []

    async def _sync_loop(self) -> None:
        while True:
            # Ticks fire on schedule; one that finds a sync in flight skips.
            tick = asyncio.create_task(self.sync_once())
            self._ticks.add(tick)
            tick.add_done_callback(self._tick_done)
            await asyncio.sleep(self._sync_interval)

    async def _presentation_loop(self) -> None:
        while True:
            await asyncio.sleep(self._presentation_interval)
            self.present_next()

    def _tick_done(self, tick: asyncio.Task) -> None:
        self._ticks.discard(tick)
        if not tick.cancelled() and tick.exception() is not None:
            logger.error(
                "Unexpected error during album sync",
                exc_info=tick.exception(),
                extra={"album_id": self.album_id},
            )

    def _shut_down(self) -> None:
        self._closed = True
        for timer in self._timers:
            timer.cancel()
        if self._on_session_error is not None:
            self._on_session_error(self)


class AlbumViewRegistry:
    """Live album views keyed by (session id, album id).

    Views that hit a session error remove themselves.
    """

    def __init__(
        self,
        *,
        sync_interval: float = 30.0,
        presentation_interval: float = 3.0,
    ) -> None:
        self._sync_interval = sync_interval
        self._presentation_interval = presentation_interval
        self._views: Dict[Tuple[str, str], AlbumView] = {}

    def __len__(self) -> int:
        return len(self._views)

    def get(self, session_id: str, album_id: str) -> Optional[AlbumView]:
        return self._views.get((session_id, album_id))

    def start(
        self, session_id: str, album_id: str, engine: IncrementalSyncEngine
    ) -> AlbumView:
        """Return the running view for the album, starting one if needed."""
        key = (session_id, album_id)
        view = self._views.get(key)
        if view is not None:
            return view

        view = AlbumView(
            album_id,
            engine,
            sync_interval=self._sync_interval,
            presentation_interval=self._presentation_interval,
            on_session_error=functools.partial(self._discard, key),
        )
        self._views[key] = view
        view.start()
        logger.info("Started album view", extra={"album_id": album_id})
        return view

    async def stop(self, session_id: str, album_id: str) -> bool:
        view = self._views.pop((session_id, album_id), None)
        if view is None:
            return False
        await view.stop()
        logger.info("Stopped album view", extra={"album_id": album_id})
        return True

    async def stop_session(self, session_id: str) -> None:
        for key in [key for key in self._views if key[0] == session_id]:
            await self.stop(*key)

    async def stop_all(self) -> None:
        for key in list(self._views):
            await self.stop(*key)

    def _discard(self, key: Tuple[str, str], view: AlbumView) -> None:
        if self._views.get(key) is view:
            del self._views[key]
            logger.info("Discarded album view after session error", extra={"album_id": key[1]})


__all__ = ["AlbumView", "AlbumViewRegistry", "PresentationState"]
