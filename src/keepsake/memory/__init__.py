"""Memory records and their local durable storage."""

from .models import (
    ANONYMOUS_AUTHOR,
    Comment,
    MediaFile,
    MediaType,
    Memory,
    SortMode,
    SyncStatus,
)
from .store import LocalStore

__all__ = [
    "ANONYMOUS_AUTHOR",
    "Comment",
    "LocalStore",
    "MediaFile",
    "MediaType",
    "Memory",
    "SortMode",
    "SyncStatus",
]
