"""Shared fixtures."""

from pathlib import Path
from typing import Any

import pytest

from keepsake.environment import LocalEnvironment
from keepsake.errors import RemoteError
from keepsake.media import DisplayHandleCache
from keepsake.memory import LocalStore
from keepsake.remote import RemoteGateway
from keepsake.sync import SyncEngine
from keepsake.view import MemoryViewModel

PUBLIC_PREFIX = "https://example.test/storage/v1/object/public/memories-media/"


class FakeGateway(RemoteGateway):
    """In-memory backend that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.memories: dict[str, dict[str, Any]] = {}
        self.comments: list[dict[str, Any]] = []
        self.likes: set[tuple[str, str]] = set()
        self.objects: dict[str, bytes] = {}
        self.calls: list[str] = []
        self.failing: set[str] = set()
        self.closed = False

    def _call(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing or "*" in self.failing:
            raise RemoteError(operation, "simulated outage")

    @property
    def configured(self) -> bool:
        return True

    async def list_memories(self) -> list[dict[str, Any]]:
        self._call("list_memories")
        return sorted(self.memories.values(), key=lambda r: r["created_at"], reverse=True)

    async def memory_exists(self, memory_id: str) -> bool:
        self._call("memory_exists")
        return memory_id in self.memories

    async def count_likes(self, memory_id: str) -> int:
        self._call("count_likes")
        return sum(1 for mid, _ in self.likes if mid == memory_id)

    async def list_comments(self, memory_id: str) -> list[dict[str, Any]]:
        self._call("list_comments")
        rows = [c for c in self.comments if c["memory_id"] == memory_id]
        return sorted(rows, key=lambda r: r["created_at"])

    async def insert_memory(self, row: dict[str, Any]) -> None:
        self._call("insert_memory")
        self.memories[row["id"]] = dict(row)

    async def delete_memory(self, memory_id: str) -> None:
        self._call("delete_memory")
        self.memories.pop(memory_id, None)

    async def insert_like(self, memory_id: str, user_id: str) -> None:
        self._call("insert_like")
        self.likes.add((memory_id, user_id))

    async def delete_like(self, memory_id: str, user_id: str) -> None:
        self._call("delete_like")
        self.likes.discard((memory_id, user_id))

    async def insert_comment(self, row: dict[str, Any]) -> None:
        self._call("insert_comment")
        self.comments.append(dict(row))

    async def upload_media(self, path: str, data: bytes, content_type: str) -> str | None:
        self._call("upload_media")
        self.objects[path] = data
        return path

    def public_url(self, path: str) -> str:
        return PUBLIC_PREFIX + path

    def storage_path(self, url: str) -> str | None:
        if not url.startswith(PUBLIC_PREFIX):
            return None
        return url[len(PUBLIC_PREFIX):]

    async def remove_media(self, path: str) -> None:
        self._call("remove_media")
        self.objects.pop(path, None)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
    """Create a LocalStore with a temporary database."""
    store = LocalStore(tmp_path / "keepsake.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def environment(store: LocalStore) -> LocalEnvironment:
    """Environment forced online; tests flip it with set_online."""
    return LocalEnvironment(store, online=True)


@pytest.fixture
def view(tmp_path: Path) -> MemoryViewModel:
    handles = DisplayHandleCache(tmp_path / "media")
    yield MemoryViewModel(handles)
    handles.release_all()


@pytest.fixture
def engine(
    store: LocalStore,
    gateway: FakeGateway,
    environment: LocalEnvironment,
    view: MemoryViewModel,
) -> SyncEngine:
    return SyncEngine(store, gateway, environment, view=view)
