"""Remote data gateway for the hosted backend.

Wraps the backend's REST table operations and object storage for the
``memories``, ``comments`` and ``likes`` tables and one media bucket.
Failures raise RemoteError; a successful call with no rows returns an
empty result.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote, unquote

import httpx

from ..config import KeepsakeConfig
from ..errors import RemoteError

logger = logging.getLogger(__name__)

MEMORY_TABLE = "memories"
COMMENTS_TABLE = "comments"
LIKES_TABLE = "likes"


class RemoteGateway(ABC):
    """Base interface for remote persistence."""

    @property
    @abstractmethod
    def configured(self) -> bool:
        """False when this gateway is an inert stand-in."""
        ...

    @abstractmethod
    async def list_memories(self) -> list[dict[str, Any]]:
        """All memory rows, newest first."""
        ...

    @abstractmethod
    async def memory_exists(self, memory_id: str) -> bool:
        """Whether a memory row with this id exists remotely."""
        ...

    @abstractmethod
    async def count_likes(self, memory_id: str) -> int:
        """Exact number of like relations for a memory."""
        ...

    @abstractmethod
    async def list_comments(self, memory_id: str) -> list[dict[str, Any]]:
        """Comment rows for a memory, oldest first."""
        ...

    @abstractmethod
    async def insert_memory(self, row: dict[str, Any]) -> None: ...

    @abstractmethod
    async def delete_memory(self, memory_id: str) -> None: ...

    @abstractmethod
    async def insert_like(self, memory_id: str, user_id: str) -> None: ...

    @abstractmethod
    async def delete_like(self, memory_id: str, user_id: str) -> None: ...

    @abstractmethod
    async def insert_comment(self, row: dict[str, Any]) -> None: ...

    @abstractmethod
    async def upload_media(self, path: str, data: bytes, content_type: str) -> str | None:
        """Store a media object and return its storage path."""
        ...

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Resolvable URL for a storage path."""
        ...

    @abstractmethod
    def storage_path(self, url: str) -> str | None:
        """Storage path behind a public URL, or None if the URL is not ours."""
        ...

    @abstractmethod
    async def remove_media(self, path: str) -> None: ...

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class NullGateway(RemoteGateway):
    """Inert gateway used when the backend is not configured.

    Every operation is a harmless no-op returning an empty result.
    """

    @property
    def configured(self) -> bool:
        return False

    async def list_memories(self) -> list[dict[str, Any]]:
        return []

    async def memory_exists(self, memory_id: str) -> bool:
        return False

    async def count_likes(self, memory_id: str) -> int:
        return 0

    async def list_comments(self, memory_id: str) -> list[dict[str, Any]]:
        return []

    async def insert_memory(self, row: dict[str, Any]) -> None:
        return None

    async def delete_memory(self, memory_id: str) -> None:
        return None

    async def insert_like(self, memory_id: str, user_id: str) -> None:
        return None

    async def delete_like(self, memory_id: str, user_id: str) -> None:
        return None

    async def insert_comment(self, row: dict[str, Any]) -> None:
        return None

    async def upload_media(self, path: str, data: bytes, content_type: str) -> str | None:
        return None

    def public_url(self, path: str) -> str:
        return ""

    def storage_path(self, url: str) -> str | None:
        return None

    async def remove_media(self, path: str) -> None:
        return None


class SupabaseGateway(RemoteGateway):
    """Gateway speaking the Supabase REST and storage HTTP APIs."""

    def __init__(
        self,
        url: str,
        api_key: str,
        bucket: str = "memories-media",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            url: Project base URL (e.g. https://xyz.supabase.co).
            api_key: Anonymous API key.
            bucket: Storage bucket for media objects.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = url.rstrip("/")
        self.bucket = bucket
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
        )

    @property
    def configured(self) -> bool:
        return True

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, turning every failure into RemoteError."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteError(operation, f"timed out: {e}") from e
        except httpx.RequestError as e:
            raise RemoteError(operation, f"request failed: {e}") from e

        if response.is_error:
            raise RemoteError(
                operation,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def _select(
        self,
        operation: str,
        table: str,
        params: dict[str, str],
    ) -> list[dict[str, Any]]:
        """Run a table select and return its rows."""
        response = await self._request(operation, "GET", f"/rest/v1/{table}", params=params)
        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteError(operation, f"invalid JSON: {e}") from e
        if not isinstance(rows, list):
            raise RemoteError(operation, f"unexpected payload type: {type(rows).__name__}")
        return rows

    async def _insert(self, operation: str, table: str, row: dict[str, Any]) -> None:
        await self._request(
            operation,
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=minimal"},
        )

    async def _delete(self, operation: str, table: str, params: dict[str, str]) -> None:
        await self._request(operation, "DELETE", f"/rest/v1/{table}", params=params)

    async def list_memories(self) -> list[dict[str, Any]]:
        return await self._select(
            "list_memories",
            MEMORY_TABLE,
            {"select": "*", "order": "created_at.desc"},
        )

    async def memory_exists(self, memory_id: str) -> bool:
        rows = await self._select(
            "memory_exists",
            MEMORY_TABLE,
            {"select": "id", "id": f"eq.{memory_id}"},
        )
        return len(rows) > 0

    async def count_likes(self, memory_id: str) -> int:
        response = await self._request(
            "count_likes",
            "HEAD",
            f"/rest/v1/{LIKES_TABLE}",
            params={"select": "memory_id", "memory_id": f"eq.{memory_id}"},
            headers={"Prefer": "count=exact"},
        )
        return parse_content_range_total("count_likes", response.headers.get("content-range"))

    async def list_comments(self, memory_id: str) -> list[dict[str, Any]]:
        return await self._select(
            "list_comments",
            COMMENTS_TABLE,
            {"select": "*", "memory_id": f"eq.{memory_id}", "order": "created_at.asc"},
        )

    async def insert_memory(self, row: dict[str, Any]) -> None:
        await self._insert("insert_memory", MEMORY_TABLE, row)

    async def delete_memory(self, memory_id: str) -> None:
        await self._delete("delete_memory", MEMORY_TABLE, {"id": f"eq.{memory_id}"})

    async def insert_like(self, memory_id: str, user_id: str) -> None:
        await self._insert("insert_like", LIKES_TABLE, {"memory_id": memory_id, "user_id": user_id})

    async def delete_like(self, memory_id: str, user_id: str) -> None:
        await self._delete(
            "delete_like",
            LIKES_TABLE,
            {"memory_id": f"eq.{memory_id}", "user_id": f"eq.{user_id}"},
        )

    async def insert_comment(self, row: dict[str, Any]) -> None:
        await self._insert("insert_comment", COMMENTS_TABLE, row)

    async def upload_media(self, path: str, data: bytes, content_type: str) -> str | None:
        await self._request(
            "upload_media",
            "POST",
            f"/storage/v1/object/{self.bucket}/{quote(path)}",
            content=data,
            headers={
                "Content-Type": content_type or "application/octet-stream",
                "x-upsert": "false",
            },
        )
        return path

    def public_url(self, path: str) -> str:
        return f"{self._public_prefix}{quote(path)}"

    def storage_path(self, url: str) -> str | None:
        if not url.startswith(self._public_prefix):
            return None
        path = unquote(url[len(self._public_prefix):])
        return path or None

    async def remove_media(self, path: str) -> None:
        await self._request(
            "remove_media",
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            json={"prefixes": [path]},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def _public_prefix(self) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/"


def parse_content_range_total(operation: str, header: str | None) -> int:
    """Extract the total from a Content-Range header such as ``0-4/5`` or ``*/0``."""
    if not header or "/" not in header:
        raise RemoteError(operation, f"missing count in Content-Range: {header!r}")
    total = header.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        raise RemoteError(operation, f"unknown count in Content-Range: {header!r}")
    return int(total)


def create_gateway(
    config: KeepsakeConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RemoteGateway:
    """Build the gateway for a configuration.

    Returns a NullGateway (and warns once) when the backend URL or key is
    missing or still a placeholder.
    """
    if not config.remote_configured:
        logger.warning("Remote backend not configured, running in offline mode")
        return NullGateway()

    assert config.supabase_url is not None and config.supabase_key is not None
    return SupabaseGateway(
        config.supabase_url.strip(),
        config.supabase_key.strip(),
        bucket=config.bucket,
        timeout=config.timeout,
        transport=transport,
    )
