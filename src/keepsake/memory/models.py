"""Data models for memories and their comments."""

import mimetypes
import re
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any

ANONYMOUS_AUTHOR = "Anonymous"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")


class MediaType(str, Enum):
    """Kind of media attached to a memory."""

    IMAGE = "image"
    VIDEO = "video"

    @classmethod
    def from_content_type(cls, content_type: str | None) -> "MediaType":
        """Videos are detected by MIME prefix, everything else is an image."""
        if content_type and content_type.lower().startswith("video"):
            return cls.VIDEO
        return cls.IMAGE


class SyncStatus(str, Enum):
    """State of the last sync cycle."""

    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class SortMode(str, Enum):
    """Ordering for the memory list."""

    TIME = "time"
    HEAT = "heat"


def now_ms() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Generate a client-side record id."""
    return uuid.uuid4().hex


def ms_to_iso(value: int) -> str:
    """Convert epoch milliseconds to an ISO-8601 UTC string."""
    return (_EPOCH + timedelta(milliseconds=value)).isoformat()


def iso_to_ms(value: Any) -> int:
    """Convert an ISO-8601 string (or a number) to epoch milliseconds.

    Naive timestamps are treated as UTC. Missing values map to 0.
    """
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Postgres trims trailing zeros; fromisoformat on 3.10 wants 3 or 6 digits.
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class Comment:
    """A comment attached to a memory.

    Attributes:
        id: Client-generated comment id.
        author: Display name, never blank.
        content: Comment text, stripped and non-empty.
        created_at: Epoch milliseconds.
        user_id: Identity that wrote the comment, if known.
    """

    id: str
    author: str
    content: str
    created_at: int
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Plain serializable fields for the local store."""
        return {
            "id": self.id,
            "author": self.author,
            "content": self.content,
            "created_at": self.created_at,
            "user_id": self.user_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Comment":
        """Create from a local-store dict, ignoring unknown keys."""
        return cls(
            id=str(data["id"]),
            author=str(data.get("author") or ANONYMOUS_AUTHOR),
            content=str(data.get("content", "")),
            created_at=int(data.get("created_at") or 0),
            user_id=data.get("user_id"),
        )

    def to_row(self, memory_id: str) -> dict[str, Any]:
        """Row for the remote comments table."""
        return {
            "id": self.id,
            "memory_id": memory_id,
            "author": self.author,
            "content": self.content,
            "created_at": ms_to_iso(self.created_at),
            "user_id": self.user_id,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Comment":
        """Create from a remote comments row."""
        return cls(
            id=str(row["id"]),
            author=str(row.get("author") or ANONYMOUS_AUTHOR),
            content=str(row.get("content") or ""),
            created_at=iso_to_ms(row.get("created_at")),
            user_id=row.get("user_id"),
        )


@dataclass
class Memory:
    """A user-created memory entry.

    Every field is always present. A record with no remote copy keeps its
    raw media in ``blob`` and a local display handle in ``media_url``; a
    remote-backed record has ``blob=None`` and a public URL.

    Attributes:
        id: Client-generated id, immutable.
        title: Short title.
        year: Grouping key, ordered numerically.
        story: Free text.
        created_at: Epoch milliseconds.
        likes: Derived like count, never negative.
        media_type: Image or video.
        media_url: Remote public URL or local display handle ("" if none).
        user_id: Owning identity.
        comments: Comments ordered by creation time.
        blob: Raw media bytes for records without a remote copy.
        content_type: MIME type of the media payload.
    """

    id: str
    title: str
    year: str
    story: str
    created_at: int
    user_id: str
    media_type: MediaType = MediaType.IMAGE
    media_url: str = ""
    likes: int = 0
    comments: list[Comment] = field(default_factory=list)
    blob: bytes | None = None
    content_type: str = ""

    def __post_init__(self) -> None:
        self.year = str(self.year)
        self.media_type = MediaType(self.media_type)
        if self.likes < 0:
            self.likes = 0
        if self.comments is None:
            self.comments = []

    @property
    def has_local_payload(self) -> bool:
        """True when the media exists only as a local blob."""
        return self.blob is not None

    def copy(self, **changes: Any) -> "Memory":
        """Return a shallow copy with ``changes`` applied."""
        if "comments" not in changes:
            changes["comments"] = list(self.comments)
        return replace(self, **changes)

    def to_row(self) -> dict[str, Any]:
        """Row for the remote memories table.

        Counters, comments and the binary payload never go on the wire.
        """
        return {
            "id": self.id,
            "title": self.title,
            "year": self.year,
            "story": self.story,
            "media_type": self.media_type.value,
            "media_url": self.media_url,
            "user_id": self.user_id,
            "created_at": ms_to_iso(self.created_at),
        }

    @classmethod
    def from_row(
        cls,
        row: dict[str, Any],
        likes: int = 0,
        comments: list[Comment] | None = None,
    ) -> "Memory":
        """Assemble a record from a remote row plus its derived children."""
        return cls(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            year=str(row.get("year") or ""),
            story=str(row.get("story") or ""),
            created_at=iso_to_ms(row.get("created_at")),
            user_id=str(row.get("user_id") or ""),
            media_type=MediaType(row.get("media_type") or MediaType.IMAGE.value),
            media_url=str(row.get("media_url") or ""),
            likes=max(0, int(likes)),
            comments=sorted(comments or [], key=lambda c: c.created_at),
        )


def media_extension(filename: str, content_type: str | None) -> str:
    """Extension for a storage key, from the filename or else the MIME type."""
    suffix = Path(filename).suffix.lstrip(".").lower()
    if suffix:
        return suffix
    guessed = mimetypes.guess_extension(content_type or "")
    return guessed.lstrip(".") if guessed else "bin"


@dataclass(frozen=True)
class MediaFile:
    """Media payload handed in by the caller of add_memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        """File extension without the dot, guessed from name or MIME type."""
        return media_extension(self.filename, self.content_type)

    @classmethod
    def from_path(cls, path: Path | str) -> "MediaFile":
        """Read a file from disk, guessing its content type."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or "application/octet-stream",
            data=path.read_bytes(),
        )
