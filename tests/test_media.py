"""Tests for DisplayHandleCache."""

from pathlib import Path
from urllib.parse import urlparse

import pytest

from keepsake.media import DisplayHandleCache
from keepsake.memory import MediaType


@pytest.fixture
def cache(tmp_path: Path) -> DisplayHandleCache:
    cache = DisplayHandleCache(tmp_path / "media")
    yield cache
    cache.release_all()


def _path(uri: str) -> Path:
    return Path(urlparse(uri).path)


class TestAcquire:
    def test_writes_payload(self, cache: DisplayHandleCache):
        uri = cache.acquire("m1", b"payload", content_type="image/png")

        assert uri.startswith("file://")
        assert uri.endswith(".png")
        assert _path(uri).read_bytes() == b"payload"
        assert "m1" in cache

    def test_same_id_reuses_handle(self, cache: DisplayHandleCache):
        first = cache.acquire("m1", b"payload")
        second = cache.acquire("m1", b"other")
        assert first == second
        assert len(cache) == 1

    def test_no_payload_no_handle(self, cache: DisplayHandleCache):
        assert cache.acquire("m1", None) == ""
        assert cache.acquire("m2", b"") == ""
        assert len(cache) == 0

    def test_video_suffix_without_content_type(self, cache: DisplayHandleCache):
        assert cache.acquire("m1", b"v", MediaType.VIDEO).endswith(".mp4")


class TestRelease:
    def test_release_once(self, cache: DisplayHandleCache):
        path = _path(cache.acquire("m1", b"payload"))

        assert cache.release("m1") is True
        assert not path.exists()
        assert cache.release("m1") is False

    def test_release_all(self, cache: DisplayHandleCache):
        paths = [_path(cache.acquire(f"m{i}", b"x")) for i in range(3)]

        assert cache.release_all() == 3
        assert all(not p.exists() for p in paths)
        assert not cache.directory.exists()
        assert cache.release_all() == 0

    def test_acquire_after_release_all(self, cache: DisplayHandleCache):
        cache.release_all()
        uri = cache.acquire("m1", b"again")
        assert _path(uri).read_bytes() == b"again"
