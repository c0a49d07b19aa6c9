"""Service layer exports."""

from .album_view import AlbumView, AlbumViewRegistry, PresentationState
from .credentials import CredentialGuard, CredentialGuardRegistry, CredentialStore
from .selection import segment_sizes, select_index
from .sync_engine import IncrementalSyncEngine, SyncCursor, TailSyncResult, merge_by_id
from .token_cipher import TokenCipherService

__all__ = [
    "AlbumView",
    "AlbumViewRegistry",
    "CredentialGuard",
    "CredentialGuardRegistry",
    "CredentialStore",
    "IncrementalSyncEngine",
    "PresentationState",
    "SyncCursor",
    "TailSyncResult",
    "TokenCipherService",
    "merge_by_id",
    "segment_sizes",
    "select_index",
]
