"""JSONL sync journal.

Each line records one event: a load or reconcile cycle, a local write and
whether it reached the backend, or a remote failure that was absorbed.
The active file rotates to numbered backups (``sync.1.jsonl`` is the most
recent) once it grows past ``max_size_mb``.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

DEFAULT_LOG_DIR = Path.home() / ".keepsake" / "logs"


def _is_empty(value: Any) -> bool:
    return value is None or value == {} or value == []


@dataclass
class LogEntry:
    """A single journal entry."""

    timestamp: str
    event: str
    user_id: str | None = None
    operation: str | None = None
    memory_id: str | None = None
    status: str | None = None
    duration_ms: float | None = None
    count: int | None = None
    online: bool | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, dropping unset fields."""
        return {k: v for k, v in asdict(self).items() if not _is_empty(v)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class JSONLLogger:
    """Append-only journal of sync events.

    Args:
        log_dir: Directory for the journal. Defaults to ``~/.keepsake/logs``.
        filename: Name of the active file.
        max_size_mb: Size at which the active file is rotated.
        backup_count: Number of rotated files kept; older ones are deleted.
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "sync.jsonl",
        max_size_mb: float = 10.0,
        backup_count: int = 5,
    ) -> None:
        self.log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOG_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.backup_count = max(backup_count, 1)
        self.user_id: str | None = None

    @property
    def log_path(self) -> Path:
        """Active journal file."""
        return self.log_dir / self.filename

    def backup_path(self, index: int) -> Path:
        """Path of the ``index``-th rotated file (1 is the newest)."""
        path = self.log_path
        return path.with_name(f"{path.stem}.{index}{path.suffix}")

    def set_user_id(self, user_id: str | None) -> None:
        """Stamp subsequent entries with this installation id."""
        self.user_id = user_id

    def _rotate(self) -> None:
        oldest = self.backup_path(self.backup_count)
        if oldest.exists():
            oldest.unlink()
        for index in range(self.backup_count - 1, 0, -1):
            source = self.backup_path(index)
            if source.exists():
                source.rename(self.backup_path(index + 1))
        self.log_path.rename(self.backup_path(1))

    def _append(self, entry: LogEntry) -> None:
        path = self.log_path
        if path.exists() and path.stat().st_size >= self.max_size_bytes:
            self._rotate()
        with open(path, "a", encoding="utf-8") as f:
            f.write(entry.to_json() + "\n")

    def log(self, event: str, **values: Any) -> None:
        """Record an event.

        Keyword arguments naming a ``LogEntry`` field fill that field; any
        others are collected under ``extra``.
        """
        known = {name: values.pop(name) for name in _ENTRY_FIELDS if name in values}
        known.setdefault("user_id", self.user_id)
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            extra=values,
            **known,
        )
        self._append(entry)

    def log_sync(
        self,
        operation: str,
        status: str,
        *,
        duration_ms: float | None = None,
        count: int | None = None,
        online: bool | None = None,
    ) -> None:
        """Record the outcome of a load or reconcile cycle."""
        self.log(
            "sync",
            operation=operation,
            status=status,
            duration_ms=duration_ms,
            count=count,
            online=online,
        )

    def log_remote_failure(self, operation: str, error: str, *, memory_id: str | None = None) -> None:
        """Record a remote call that failed and was absorbed."""
        self.log("remote_failure", operation=operation, memory_id=memory_id, error=error)

    def log_write(
        self,
        operation: str,
        memory_id: str,
        *,
        online: bool | None = None,
        mirrored: bool | None = None,
    ) -> None:
        """Record a local write and whether it reached the backend."""
        extra = {} if mirrored is None else {"mirrored": mirrored}
        self.log("write", operation=operation, memory_id=memory_id, online=online, **extra)


_ENTRY_FIELDS = tuple(
    f.name for f in fields(LogEntry) if f.name not in ("timestamp", "event", "extra")
)

_journal: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Return the process-wide journal, creating a default one on first use."""
    global _journal
    if _journal is None:
        _journal = JSONLLogger()
    return _journal


def configure_logger(log_dir: str | Path | None = None, **kwargs: Any) -> JSONLLogger:
    """Replace the process-wide journal and return it."""
    global _journal
    _journal = JSONLLogger(log_dir=log_dir, **kwargs)
    return _journal
