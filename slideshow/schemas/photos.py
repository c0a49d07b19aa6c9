"""
Pydantic models for Photos Library metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from slideshow.core.errors import MalformedResponse

T = TypeVar("T")


class AlbumSummary(BaseModel):
    """An owned or shared album as returned by the album listings."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str = Field("", description="Shared albums may be untitled.")

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "AlbumSummary":
        try:
            return cls(id=payload["id"], title=payload.get("title") or "")
        except (KeyError, TypeError, ValidationError) as exc:
            raise MalformedResponse(f"Album entry is missing required fields: {payload!r}") from exc


class MediaItem(BaseModel):
    """Metadata for a single photo in an album."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    base_url: str = Field(..., alias="baseUrl", min_length=1)
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)
    creation_time: datetime = Field(..., alias="creationTime")

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "MediaItem":
        """Flatten the upstream ``mediaMetadata`` block into a MediaItem."""
        try:
            metadata = payload["mediaMetadata"]
            return cls(
                id=payload["id"],
                base_url=payload["baseUrl"],
                width=metadata["width"],
                height=metadata["height"],
                creation_time=metadata["creationTime"],
            )
        except (KeyError, TypeError, ValidationError) as exc:
            raise MalformedResponse(f"Media item is missing required fields: {payload!r}") from exc

    @property
    def display_url(self) -> str:
        """URL that renders the item at its native size."""
        return f"{self.base_url}=w{self.width}-h{self.height}"


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of an upstream listing."""

    items: List[T] = field(default_factory=list)
    next_page_token: Optional[str] = None


class MediaItemOut(BaseModel):
    """Media item representation returned to the display."""

    id: str
    base_url: str = Field(..., serialization_alias="baseUrl")
    width: int
    height: int
    creation_time: datetime = Field(..., serialization_alias="creationTime")
    display_url: str = Field(..., serialization_alias="displayUrl")

    @classmethod
    def from_item(cls, item: MediaItem) -> "MediaItemOut":
        return cls(
            id=item.id,
            base_url=item.base_url,
            width=item.width,
            height=item.height,
            creation_time=item.creation_time,
            display_url=item.display_url,
        )


class TailPageResponse(BaseModel):
    """Response body for a one-shot incremental album query."""

    new_items: List[MediaItemOut] = Field(
        default_factory=list, serialization_alias="newItems"
    )
    next_page_token: Optional[str] = Field(None, serialization_alias="nextPageToken")


class PresentationResponse(BaseModel):
    """Current slideshow frame for an album view."""

    album_id: str = Field(..., serialization_alias="albumId")
    url: Optional[str] = None
    item_count: int = Field(0, serialization_alias="itemCount")


__all__ = [
    "AlbumSummary",
    "MediaItem",
    "MediaItemOut",
    "Page",
    "PresentationResponse",
    "TailPageResponse",
]
