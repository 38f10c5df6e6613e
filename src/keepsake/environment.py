"""Runtime environment capabilities: network state and persisted settings."""

import logging
import socket
from typing import Protocol, runtime_checkable
from urllib.parse import urlparse

from .memory.store import LocalStore

logger = logging.getLogger(__name__)


@runtime_checkable
class Environment(Protocol):
    """What the sync core needs from its host runtime.

    Online state is a hint, not a guarantee: remote calls must still
    handle failure on their own.
    """

    def is_online(self) -> bool:
        """Whether the network appears to be available."""
        ...

    async def read_setting(self, key: str) -> str | None:
        """Read a persisted scalar setting."""
        ...

    async def write_setting(self, key: str, value: str) -> None:
        """Persist a scalar setting."""
        ...


def host_resolves(hostname: str) -> bool:
    """Check whether a hostname resolves to at least one address."""
    try:
        infos = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError, OSError) as e:
        logger.debug("Cannot resolve %s: %s", hostname, e)
        return False
    return bool(infos)


class LocalEnvironment:
    """Environment backed by the local store's settings table.

    Online state is sampled by resolving the remote host unless a fixed
    value is forced.
    """

    def __init__(
        self,
        store: LocalStore,
        remote_url: str | None = None,
        online: bool | None = None,
    ) -> None:
        """Initialize the environment.

        Args:
            store: Local store holding the settings table.
            remote_url: Backend URL whose host is probed for connectivity.
            online: Force the online state instead of probing.
        """
        self.store = store
        self._host = urlparse(remote_url).hostname if remote_url else None
        self._forced = online

    def set_online(self, online: bool | None) -> None:
        """Force the online state, or pass None to resume probing."""
        self._forced = online

    def is_online(self) -> bool:
        if self._forced is not None:
            return self._forced
        if not self._host:
            return False
        return host_resolves(self._host)

    async def read_setting(self, key: str) -> str | None:
        return await self.store.read_setting(key)

    async def write_setting(self, key: str, value: str) -> None:
        await self.store.write_setting(key, value)
