"""Local display handles for media payloads that have no remote copy."""

import logging
import mimetypes
import shutil
import tempfile
from pathlib import Path

from .memory.models import MediaType

logger = logging.getLogger(__name__)


class DisplayHandleCache:
    """Maps a memory id to a local file URI for its binary payload.

    Handles are files written under a per-session cache directory. Each
    handle is released exactly once, either by ``release(id)`` when the
    record is deleted or by ``release_all()`` at session teardown.
    """

    def __init__(self, cache_dir: Path | str | None = None) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Parent directory for handle files. A fresh
                temporary directory is created inside it (or in the
                system temp dir when None).
        """
        if cache_dir is not None:
            Path(cache_dir).mkdir(parents=True, exist_ok=True)
        self._dir = Path(tempfile.mkdtemp(prefix="keepsake-", dir=cache_dir))
        self._handles: dict[str, Path] = {}

    @property
    def directory(self) -> Path:
        """Directory holding the handle files."""
        return self._dir

    def __contains__(self, memory_id: str) -> bool:
        return memory_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def acquire(
        self,
        memory_id: str,
        data: bytes | None,
        media_type: MediaType = MediaType.IMAGE,
        content_type: str = "",
    ) -> str:
        """Get the display handle for a payload, creating it on first use.

        Args:
            memory_id: Record the payload belongs to.
            data: Raw media bytes. Empty or None yields no handle.
            media_type: Used to pick a file suffix when content_type is unknown.
            content_type: MIME type of the payload.

        Returns:
            A ``file://`` URI, or "" when there is no payload.
        """
        if not data:
            return ""
        existing = self._handles.get(memory_id)
        if existing is not None:
            return existing.as_uri()

        suffix = mimetypes.guess_extension(content_type) if content_type else None
        if suffix is None:
            suffix = ".mp4" if media_type == MediaType.VIDEO else ".img"
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._dir / f"{memory_id}{suffix}"
        path.write_bytes(data)
        self._handles[memory_id] = path
        return path.as_uri()

    def release(self, memory_id: str) -> bool:
        """Release the handle for a record.

        Returns:
            True if a handle was released, False if none was held.
        """
        path = self._handles.pop(memory_id, None)
        if path is None:
            return False
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Cannot remove display handle %s: %s", path, e)
        return True

    def release_all(self) -> int:
        """Release every handle and remove the cache directory.

        Returns:
            Number of handles released.
        """
        count = 0
        for memory_id in list(self._handles):
            if self.release(memory_id):
                count += 1
        shutil.rmtree(self._dir, ignore_errors=True)
        return count
