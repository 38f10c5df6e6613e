"""Tests for configuration loading."""

from pathlib import Path

import pytest

from keepsake.config import (
    DEFAULT_BUCKET,
    DEFAULT_TIMEOUT,
    KeepsakeConfig,
    load_config,
)
from keepsake.errors import ConfigError


class TestKeepsakeConfig:
    def test_defaults(self):
        config = KeepsakeConfig()
        assert config.home == Path.home() / ".keepsake"
        assert config.bucket == DEFAULT_BUCKET
        assert config.remote_configured is False

    def test_paths_under_home(self, tmp_path: Path):
        config = KeepsakeConfig(home=tmp_path)
        assert config.db_path == tmp_path / "keepsake.db"
        assert config.media_dir == tmp_path / "media"
        assert config.log_dir == tmp_path / "logs"

    def test_invalid_timeout(self):
        with pytest.raises(ConfigError):
            KeepsakeConfig(timeout=0)

    @pytest.mark.parametrize(
        "url,key",
        [
            (None, "key"),
            ("https://x.supabase.co", None),
            ("your_supabase_url_here", "key"),
            ("https://x.supabase.co", "your_supabase_anon_key_here"),
            ("x.supabase.co", "key"),
        ],
    )
    def test_not_configured(self, url, key):
        assert KeepsakeConfig(supabase_url=url, supabase_key=key).remote_configured is False

    def test_configured(self):
        config = KeepsakeConfig(supabase_url="https://x.supabase.co", supabase_key="key")
        assert config.remote_configured is True


class TestLoadConfig:
    def test_empty_environment(self):
        config = load_config({})
        assert config.supabase_url is None
        assert config.timeout == DEFAULT_TIMEOUT
        assert config.force_offline is False

    def test_reads_variables(self, tmp_path: Path):
        config = load_config({
            "SUPABASE_URL": "https://x.supabase.co",
            "SUPABASE_ANON_KEY": "key",
            "KEEPSAKE_BUCKET": "media",
            "KEEPSAKE_HOME": str(tmp_path),
            "KEEPSAKE_TIMEOUT": "2.5",
            "KEEPSAKE_OFFLINE": "yes",
        })
        assert config.remote_configured is True
        assert config.bucket == "media"
        assert config.home == tmp_path
        assert config.timeout == 2.5
        assert config.force_offline is True

    def test_bad_timeout_uses_default(self, caplog):
        config = load_config({"KEEPSAKE_TIMEOUT": "soon"})
        assert config.timeout == DEFAULT_TIMEOUT
        assert "KEEPSAKE_TIMEOUT" in caplog.text

    def test_reads_os_environ(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("KEEPSAKE_HOME", str(tmp_path))
        assert load_config().home == tmp_path
