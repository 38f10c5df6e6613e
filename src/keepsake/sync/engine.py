"""Synchronization engine between the local store and the remote backend.

Consistency contract: writes land in the local store first and are applied
to the working set optimistically. Remote mirroring is best-effort; a
remote failure is logged and never rolls back local state. Like counts are
client-side until the next full load recomputes them from the backend.
Remote state is pull-only and nothing is retried automatically; records
left local-only are pushed by ``reconcile()``.
"""

import asyncio
import json
import logging
import time
from typing import Any

from ..environment import Environment
from ..errors import LocalStoreError, RemoteError
from ..identity import IdentityProvider
from ..logging import JSONLLogger
from ..memory.models import (
    ANONYMOUS_AUTHOR,
    Comment,
    MediaFile,
    MediaType,
    Memory,
    SyncStatus,
    media_extension,
    new_id,
    now_ms,
)
from ..memory.store import LocalStore
from ..remote.gateway import RemoteGateway
from ..view import MemoryViewModel

logger = logging.getLogger(__name__)

LIKED_IDS_KEY = "liked-memory-ids"


class SyncEngine:
    """Orchestrates load, add, like, comment, delete and reconcile.

    The engine is the only writer to the local store, the remote gateway
    and the view model's working set.
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        environment: Environment,
        view: MemoryViewModel | None = None,
        identity: IdentityProvider | None = None,
        journal: JSONLLogger | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Local durable store.
            gateway: Remote gateway (a NullGateway when unconfigured).
            environment: Network state and settings capability.
            view: View model owning the working set.
            identity: Identity provider; built from environment if None.
            journal: Optional JSONL sync journal.
        """
        self.store = store
        self.gateway = gateway
        self.environment = environment
        self.view = view if view is not None else MemoryViewModel()
        self.identity = identity if identity is not None else IdentityProvider(environment)
        self.journal = journal

        self.status = SyncStatus.IDLE
        self.loading = False
        self.initialized = False
        self._load_task: asyncio.Task | None = None
        self._liked: set[str] | None = None

    @property
    def is_online(self) -> bool:
        """True only when the backend is configured and the network looks up."""
        return self.gateway.configured and self.environment.is_online()

    # Load

    async def load(self) -> None:
        """Load the working set once per session.

        Concurrent callers share the same in-flight load; later calls are
        no-ops. A local store failure propagates and clears the guard so
        the caller may try again.
        """
        if self.initialized:
            return
        if self._load_task is None:
            self._load_task = asyncio.create_task(self._load_once())
        await self._load_task

    async def _load_once(self) -> None:
        self.loading = True
        started = time.monotonic()
        online = self.is_online
        try:
            await self._liked_ids()
            if self.journal:
                self.journal.set_user_id(await self.identity.current_id())
            if online:
                await self._load_with_remote()
            else:
                self.status = SyncStatus.IDLE
                await self._load_local()
            self.initialized = True
        except LocalStoreError:
            self._load_task = None
            raise
        finally:
            self.loading = False

        if self.journal:
            self.journal.log_sync(
                "load",
                self.status.value,
                duration_ms=(time.monotonic() - started) * 1000,
                count=len(self.view.memories),
                online=online,
            )

    async def _load_with_remote(self) -> None:
        self.status = SyncStatus.SYNCING
        try:
            records = await self._fetch_remote()
        except RemoteError as e:
            self._remote_failed("load", e)
            self.status = SyncStatus.ERROR
            await self._load_local()
            return

        self.view.replace_all(records)
        for record in records:
            await self.store.put(record)
        self.status = SyncStatus.SYNCED
        logger.debug("Loaded %d memories from remote", len(records))

    async def _fetch_remote(self) -> list[Memory]:
        """Fetch every remote memory with its like count and comments."""
        rows = await self.gateway.list_memories()
        return list(await asyncio.gather(*(self._assemble(row) for row in rows)))

    async def _assemble(self, row: dict[str, Any]) -> Memory:
        memory_id = str(row.get("id", ""))
        likes, comment_rows = await asyncio.gather(
            self.gateway.count_likes(memory_id),
            self.gateway.list_comments(memory_id),
        )
        try:
            comments = [Comment.from_row(c) for c in comment_rows]
            return Memory.from_row(row, likes=likes, comments=comments)
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError("load", f"malformed row {memory_id!r}: {e}") from e

    async def _load_local(self) -> None:
        records = await self.store.get_all()
        for record in records:
            if record.blob is not None:
                record.media_url = self.view.handles.acquire(
                    record.id, record.blob, record.media_type, record.content_type
                )
        self.view.replace_all(records)
        logger.debug("Loaded %d memories from local store", len(records))

    # Add

    async def add_memory(
        self,
        file: MediaFile,
        title: str,
        year: str | int,
        story: str = "",
    ) -> Memory:
        """Create a memory from a media file.

        The record is always persisted locally before anything else. When
        online the media is uploaded first; if that fails (or offline) the
        raw payload is kept locally and a local display handle is used.
        Calling this twice creates two records.

        Returns:
            The created memory as held in the working set.
        """
        self.loading = True
        try:
            user_id = await self.identity.current_id()
            memory_id = new_id()
            online = self.is_online

            remote_url = ""
            if online:
                remote_url = await self._upload(memory_id, user_id, file)

            memory = Memory(
                id=memory_id,
                title=title,
                year=str(year),
                story=story,
                created_at=now_ms(),
                user_id=user_id,
                media_type=MediaType.from_content_type(file.content_type),
                media_url=remote_url,
                blob=None if remote_url else file.data,
                content_type=file.content_type,
            )

            await self.store.put(self._for_store(memory))
            if memory.blob is not None:
                memory.media_url = self.view.handles.acquire(
                    memory.id, memory.blob, memory.media_type, memory.content_type
                )
            self.view.prepend(memory)

            mirrored = False
            if remote_url:
                try:
                    await self.gateway.insert_memory(memory.to_row())
                    mirrored = True
                except RemoteError as e:
                    self._remote_failed("insert_memory", e, memory_id)

            if self.journal:
                self.journal.log_write("add", memory_id, online=online, mirrored=mirrored)
            return memory
        finally:
            self.loading = False

    async def _upload(self, memory_id: str, user_id: str, file: MediaFile) -> str:
        """Upload media and return its public URL, or "" on failure."""
        path = f"{user_id}/{memory_id}.{file.extension}"
        try:
            stored = await self.gateway.upload_media(path, file.data, file.content_type)
        except RemoteError as e:
            self._remote_failed("upload_media", e, memory_id)
            return ""
        if not stored:
            return ""
        return self.gateway.public_url(stored)

    # Likes

    def is_liked(self, memory_id: str) -> bool:
        """Whether the current identity has liked a memory."""
        return self._liked is not None and memory_id in self._liked

    async def toggle_like(self, memory_id: str) -> Memory | None:
        """Like a memory, or unlike it if already liked.

        The count moves by one and never drops below zero. The displayed
        count may drift from the remote aggregate until the next load.

        Returns:
            The updated memory, or None if it is not in the working set.
        """
        target = self.view.get(memory_id)
        if target is None:
            return None

        user_id = await self.identity.current_id()
        liked = await self._liked_ids()
        if memory_id in liked:
            liked.discard(memory_id)
            target.likes = max(0, target.likes - 1)
            now_liked = False
        else:
            liked.add(memory_id)
            target.likes += 1
            now_liked = True

        await self._persist_liked_ids(user_id)
        await self.store.put(self._for_store(target))

        online = self.is_online
        mirrored = False
        if online:
            try:
                if now_liked:
                    await self.gateway.insert_like(memory_id, user_id)
                else:
                    await self.gateway.delete_like(memory_id, user_id)
                mirrored = True
            except RemoteError as e:
                self._remote_failed("like" if now_liked else "unlike", e, memory_id)

        if self.journal:
            self.journal.log_write(
                "like" if now_liked else "unlike", memory_id, online=online, mirrored=mirrored
            )
        return target

    async def _liked_ids(self) -> set[str]:
        if self._liked is None:
            user_id = await self.identity.current_id()
            raw = await self.environment.read_setting(self._liked_key(user_id))
            self._liked = set()
            if raw:
                try:
                    parsed = json.loads(raw)
                except json.JSONDecodeError as e:
                    logger.warning("Ignoring corrupt liked-id setting: %s", e)
                else:
                    if isinstance(parsed, list):
                        self._liked = {str(item) for item in parsed}
        return self._liked

    async def _persist_liked_ids(self, user_id: str) -> None:
        liked = sorted(self._liked or ())
        await self.environment.write_setting(self._liked_key(user_id), json.dumps(liked))

    @staticmethod
    def _liked_key(user_id: str) -> str:
        return f"{LIKED_IDS_KEY}:{user_id}"

    # Comments

    async def add_comment(
        self,
        memory_id: str,
        content: str | None,
        author: str | None = None,
    ) -> Comment | None:
        """Append a comment to a memory.

        Blank content is rejected silently. A blank author becomes
        ANONYMOUS_AUTHOR.

        Returns:
            The new comment, or None if rejected or the memory is unknown.
        """
        target = self.view.get(memory_id)
        if target is None:
            return None
        text = (content or "").strip()
        if not text:
            return None

        user_id = await self.identity.current_id()
        comment = Comment(
            id=new_id(),
            author=(author or "").strip() or ANONYMOUS_AUTHOR,
            content=text,
            created_at=now_ms(),
            user_id=user_id,
        )
        target.comments.append(comment)
        await self.store.put(self._for_store(target))

        online = self.is_online
        mirrored = False
        if online:
            try:
                await self.gateway.insert_comment(comment.to_row(memory_id))
                mirrored = True
            except RemoteError as e:
                self._remote_failed("insert_comment", e, memory_id)

        if self.journal:
            self.journal.log_write("comment", memory_id, online=online, mirrored=mirrored)
        return comment

    # Delete

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory owned by the current identity.

        Remote removal is best-effort; local removal always happens.

        Returns:
            True if deleted, False if unknown or owned by someone else.
        """
        target = self.view.get(memory_id) or await self.store.get(memory_id)
        if target is None:
            return False

        user_id = await self.identity.current_id()
        if target.user_id != user_id:
            logger.warning("Refusing to delete memory %s owned by another user", memory_id)
            return False

        online = self.is_online
        if online:
            path = self.gateway.storage_path(target.media_url) if target.blob is None else None
            if path:
                try:
                    await self.gateway.remove_media(path)
                except RemoteError as e:
                    self._remote_failed("remove_media", e, memory_id)
            try:
                await self.gateway.delete_memory(memory_id)
            except RemoteError as e:
                self._remote_failed("delete_memory", e, memory_id)

        await self.store.delete(memory_id)
        self.view.remove(memory_id)
        self.view.handles.release(memory_id)

        liked = await self._liked_ids()
        if memory_id in liked:
            liked.discard(memory_id)
            await self._persist_liked_ids(user_id)

        if self.journal:
            self.journal.log_write("delete", memory_id, online=online)
        return True

    # Reconcile

    async def reconcile(self) -> int:
        """Push local records owned by this identity that the backend lacks.

        A failure on one record is logged and the rest are still processed.

        Returns:
            Number of records pushed.
        """
        if not self.is_online:
            logger.debug("Skipping reconcile while offline")
            return 0

        started = time.monotonic()
        self.status = SyncStatus.SYNCING
        user_id = await self.identity.current_id()
        liked = await self._liked_ids()

        pushed = 0
        failed = 0
        for record in await self.store.get_all():
            if record.user_id != user_id:
                continue
            try:
                if await self.gateway.memory_exists(record.id):
                    continue
                remote = await self._push(record)
            except RemoteError as e:
                self._remote_failed("reconcile", e, record.id)
                failed += 1
                continue

            await self.store.put(remote)
            if self.view.get(record.id) is not None:
                self.view.handles.release(record.id)
                self.view.replace(remote)
            pushed += 1

            failed += await self._push_children(remote, user_id, record.id in liked)

        self.status = SyncStatus.ERROR if failed else SyncStatus.SYNCED
        if self.journal:
            self.journal.log_sync(
                "reconcile",
                self.status.value,
                duration_ms=(time.monotonic() - started) * 1000,
                count=pushed,
                online=True,
            )
        logger.debug("Reconciled %d memories (%d failed)", pushed, failed)
        return pushed

    async def _push(self, record: Memory) -> Memory:
        """Upload a record's payload and insert its row."""
        remote = record
        if record.blob is not None:
            path = f"{record.user_id}/{record.id}.{media_extension('', record.content_type)}"
            stored = await self.gateway.upload_media(path, record.blob, record.content_type)
            if not stored:
                raise RemoteError("upload_media", "no storage path returned")
            remote = record.copy(blob=None, media_url=self.gateway.public_url(stored))
        await self.gateway.insert_memory(remote.to_row())
        return remote

    async def _push_children(self, record: Memory, user_id: str, liked: bool) -> int:
        """Mirror comments and the own like of a freshly pushed record.

        Each child is attempted independently.

        Returns:
            Number of children that failed.
        """
        failed = 0
        for comment in record.comments:
            try:
                await self.gateway.insert_comment(comment.to_row(record.id))
            except RemoteError as e:
                self._remote_failed("reconcile_comment", e, record.id)
                failed += 1
        if liked:
            try:
                await self.gateway.insert_like(record.id, user_id)
            except RemoteError as e:
                self._remote_failed("reconcile_like", e, record.id)
                failed += 1
        return failed

    # Teardown

    async def close(self) -> None:
        """Release display handles and close the gateway and store."""
        released = self.view.close()
        logger.debug("Released %d display handles", released)
        await self.gateway.aclose()
        self.store.close()

    def _for_store(self, memory: Memory) -> Memory:
        """Copy for the local store; local display handles are session-only."""
        if memory.blob is not None:
            return memory.copy(media_url="")
        return memory

    def _remote_failed(
        self,
        operation: str,
        error: RemoteError,
        memory_id: str | None = None,
    ) -> None:
        logger.warning("Remote %s failed for %s: %s", operation, memory_id or "-", error)
        if self.journal:
            self.journal.log_remote_failure(operation, str(error), memory_id=memory_id)
