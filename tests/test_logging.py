"""Tests for JSONL logging."""

import json
import tempfile
from pathlib import Path

import pytest

from keepsake.logging import JSONLLogger, LogEntry, configure_logger, get_logger


@pytest.fixture
def temp_log_dir():
    """Create a temporary directory for logs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def logger(temp_log_dir: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=temp_log_dir)


def _entries(logger: JSONLLogger) -> list[dict]:
    with open(logger.log_path) as f:
        return [json.loads(line) for line in f]


def test_log_entry_to_dict():
    """Test LogEntry excludes None values."""
    entry = LogEntry(timestamp="2024-01-01T00:00:00Z", event="test")
    data = entry.to_dict()

    assert "timestamp" in data
    assert "event" in data
    assert "user_id" not in data  # None excluded
    assert "extra" not in data  # Empty dict excluded


def test_log_creates_file(logger: JSONLLogger):
    """Test that logging creates the log file."""
    logger.log("test_event")

    assert logger.log_path.exists()


def test_log_writes_jsonl(logger: JSONLLogger):
    """Test that logs are written in JSONL format."""
    logger.log("event1", memory_id="m1")
    logger.log("event2", memory_id="m2")

    entries = _entries(logger)
    assert len(entries) == 2
    assert entries[0]["event"] == "event1"
    assert entries[0]["memory_id"] == "m1"
    assert entries[1]["event"] == "event2"


def test_log_sync(logger: JSONLLogger):
    """Test logging a sync cycle."""
    logger.log_sync("load", "synced", duration_ms=12.5, count=3, online=True)

    entry = _entries(logger)[0]
    assert entry["event"] == "sync"
    assert entry["operation"] == "load"
    assert entry["status"] == "synced"
    assert entry["count"] == 3
    assert entry["online"] is True


def test_log_remote_failure(logger: JSONLLogger):
    logger.log_remote_failure("insert_like", "HTTP 500", memory_id="m1")

    entry = _entries(logger)[0]
    assert entry["event"] == "remote_failure"
    assert entry["error"] == "HTTP 500"
    assert entry["memory_id"] == "m1"


def test_log_write(logger: JSONLLogger):
    logger.log_write("add", "m1", online=False, mirrored=False)

    entry = _entries(logger)[0]
    assert entry["operation"] == "add"
    assert entry["online"] is False
    assert entry["extra"]["mirrored"] is False


def test_set_user_id(logger: JSONLLogger):
    """Test that set_user_id applies to subsequent logs."""
    logger.set_user_id("user-42")
    logger.log("event1")
    logger.log("event2")

    assert all(entry["user_id"] == "user-42" for entry in _entries(logger))


def test_rotation(temp_log_dir: Path):
    """Test log rotation when max size is exceeded."""
    logger = JSONLLogger(log_dir=temp_log_dir, max_size_mb=0.001)  # ~1KB

    for i in range(100):
        logger.log(f"event_{i}", data="x" * 100)

    log_files = list(temp_log_dir.glob("sync*.jsonl"))
    assert len(log_files) >= 2


def test_rotation_keeps_bounded_backups(temp_log_dir: Path):
    logger = JSONLLogger(log_dir=temp_log_dir, max_size_mb=0.0001, backup_count=2)

    for i in range(20):
        logger.log(f"event_{i}", data="x" * 100)

    assert logger.backup_path(1).exists()
    assert logger.backup_path(2).exists()
    assert not logger.backup_path(3).exists()
    last = [json.loads(line) for line in logger.log_path.read_text().splitlines()]
    assert last[-1]["event"] == "event_19"


def test_explicit_user_id_wins(logger: JSONLLogger):
    logger.set_user_id("default")
    logger.log("event", user_id="explicit")

    assert _entries(logger)[0]["user_id"] == "explicit"


def test_extra_fields(logger: JSONLLogger):
    """Test that extra fields are included."""
    logger.log("custom", custom_field="value", another=123)

    entry = _entries(logger)[0]
    assert entry["extra"]["custom_field"] == "value"
    assert entry["extra"]["another"] == 123


def test_configure_logger_replaces_global(temp_log_dir: Path):
    configured = configure_logger(log_dir=temp_log_dir)
    assert get_logger() is configured
    assert configured.log_dir == temp_log_dir


@pytest.mark.asyncio
async def test_engine_journals_sync(temp_log_dir: Path, engine):
    """The sync engine records load outcomes and absorbed remote failures."""
    journal = JSONLLogger(log_dir=temp_log_dir)
    engine.journal = journal
    engine.gateway.failing.add("list_memories")

    await engine.load()

    entries = _entries(journal)
    events = [(e["event"], e.get("operation")) for e in entries]
    assert ("remote_failure", "load") in events
    assert ("sync", "load") in events
    assert entries[-1]["user_id"] == await engine.identity.current_id()
