"""Configuration loader.

Settings come from environment variables. The entry point loads a
``.env`` file first (python-dotenv), so either works:

    SUPABASE_URL=https://xyz.supabase.co
    SUPABASE_ANON_KEY=...
    KEEPSAKE_BUCKET=memories-media
    KEEPSAKE_HOME=~/.keepsake
    KEEPSAKE_TIMEOUT=10
    KEEPSAKE_OFFLINE=0
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".keepsake"
DEFAULT_BUCKET = "memories-media"
DEFAULT_TIMEOUT = 10.0

PLACEHOLDER_URL = "your_supabase_url_here"
PLACEHOLDER_KEY = "your_supabase_anon_key_here"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class KeepsakeConfig:
    """Configuration for the keepsake core.

    Attributes:
        supabase_url: Base URL of the hosted backend, or None.
        supabase_key: Anonymous API key for the backend, or None.
        bucket: Object-storage bucket for media.
        home: Directory holding the database, media handles and logs.
        timeout: Remote request timeout in seconds.
        force_offline: Never talk to the remote backend.
    """

    supabase_url: str | None = None
    supabase_key: str | None = None
    bucket: str = DEFAULT_BUCKET
    home: Path | None = None
    timeout: float = DEFAULT_TIMEOUT
    force_offline: bool = False

    def __post_init__(self) -> None:
        if self.home is None:
            self.home = DEFAULT_HOME
        self.home = Path(self.home).expanduser()

        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")

    @property
    def db_path(self) -> Path:
        """SQLite database file."""
        assert self.home is not None
        return self.home / "keepsake.db"

    @property
    def media_dir(self) -> Path:
        """Parent directory for local display handles."""
        assert self.home is not None
        return self.home / "media"

    @property
    def log_dir(self) -> Path:
        """Directory for the JSONL sync journal."""
        assert self.home is not None
        return self.home / "logs"

    @property
    def remote_configured(self) -> bool:
        """True when the backend URL and key are set and not placeholders."""
        url = (self.supabase_url or "").strip()
        key = (self.supabase_key or "").strip()
        if not url or url == PLACEHOLDER_URL or not url.startswith("http"):
            return False
        if not key or key == PLACEHOLDER_KEY:
            return False
        return True


def load_config(environ: dict[str, str] | None = None) -> KeepsakeConfig:
    """Build a KeepsakeConfig from environment variables.

    Args:
        environ: Mapping to read from. Uses os.environ if None.

    Returns:
        KeepsakeConfig instance with loaded values.
    """
    env = os.environ if environ is None else environ

    timeout_raw = env.get("KEEPSAKE_TIMEOUT", "")
    timeout = DEFAULT_TIMEOUT
    if timeout_raw:
        try:
            timeout = float(timeout_raw)
        except ValueError:
            logger.warning("Invalid KEEPSAKE_TIMEOUT %r, using %s", timeout_raw, DEFAULT_TIMEOUT)

    home_raw = env.get("KEEPSAKE_HOME")

    return KeepsakeConfig(
        supabase_url=env.get("SUPABASE_URL") or None,
        supabase_key=env.get("SUPABASE_ANON_KEY") or None,
        bucket=env.get("KEEPSAKE_BUCKET") or DEFAULT_BUCKET,
        home=Path(home_raw) if home_raw else None,
        timeout=timeout,
        force_offline=env.get("KEEPSAKE_OFFLINE", "").strip().lower() in _TRUTHY,
    )
