"""SQLite storage for memories and local settings."""

import json
import sqlite3
from pathlib import Path

from ..errors import LocalStoreError
from .models import Comment, MediaType, Memory


class LocalStore:
    """Durable local storage for memory records using SQLite.

    Records are keyed by id and survive restarts. A small key-value
    ``settings`` table holds scalars that live outside the record
    collection (identity, liked ids).

    Every failure is raised as LocalStoreError; nothing is swallowed.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self.db_path)
            except (OSError, sqlite3.Error) as e:
                raise LocalStoreError(f"Cannot open {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS memories (
                    id            TEXT PRIMARY KEY,
                    title         TEXT NOT NULL,
                    year          TEXT NOT NULL,
                    story         TEXT NOT NULL DEFAULT '',
                    created_at    INTEGER NOT NULL,
                    likes         INTEGER NOT NULL DEFAULT 0,
                    media_type    TEXT NOT NULL DEFAULT 'image',
                    media_url     TEXT NOT NULL DEFAULT '',
                    content_type  TEXT NOT NULL DEFAULT '',
                    user_id       TEXT NOT NULL DEFAULT '',
                    blob          BLOB,
                    comments      TEXT NOT NULL DEFAULT '[]'
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_created_at ON memories(created_at)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_memories_likes ON memories(likes)")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key    TEXT PRIMARY KEY,
                    value  TEXT NOT NULL
                )
            """)
            conn.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Cannot initialize {self.db_path}: {e}") from e

    async def put(self, memory: Memory) -> None:
        """Insert or overwrite a record by id.

        Comments are reduced to their plain fields before storing.

        Args:
            memory: The record to persist.
        """
        conn = self._get_connection()
        comments = json.dumps([c.to_dict() for c in memory.comments], ensure_ascii=False)
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO memories (
                    id, title, year, story, created_at, likes, media_type,
                    media_url, content_type, user_id, blob, comments
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    memory.id,
                    memory.title,
                    memory.year,
                    memory.story,
                    memory.created_at,
                    max(0, memory.likes),
                    memory.media_type.value,
                    memory.media_url,
                    memory.content_type,
                    memory.user_id,
                    memory.blob,
                    comments,
                ),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to store memory {memory.id}: {e}") from e

    async def get(self, memory_id: str) -> Memory | None:
        """Get a single record by id.

        Returns:
            The stored record, or None if absent.
        """
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM memories WHERE id = ?", (memory_id,)).fetchone()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to read memory {memory_id}: {e}") from e
        return self._row_to_memory(row) if row else None

    async def get_all(self) -> list[Memory]:
        """Get every stored record. Order is unspecified."""
        conn = self._get_connection()
        try:
            rows = conn.execute("SELECT * FROM memories").fetchall()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to read memories: {e}") from e
        return [self._row_to_memory(row) for row in rows]

    async def delete(self, memory_id: str) -> bool:
        """Delete a record by id. Absent ids are not an error.

        Returns:
            True if a record was deleted, False otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            conn.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to delete memory {memory_id}: {e}") from e
        return cursor.rowcount > 0

    async def read_setting(self, key: str) -> str | None:
        """Read a scalar setting, or None if unset."""
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to read setting {key}: {e}") from e
        return row["value"] if row else None

    async def write_setting(self, key: str, value: str) -> None:
        """Write a scalar setting, replacing any previous value."""
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to write setting {key}: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_memory(self, row: sqlite3.Row) -> Memory:
        """Convert a database row to a Memory."""
        try:
            raw_comments = json.loads(row["comments"] or "[]")
        except json.JSONDecodeError as e:
            raise LocalStoreError(f"Corrupt comments for memory {row['id']}: {e}") from e
        if not isinstance(raw_comments, list):
            raise LocalStoreError(f"Corrupt comments for memory {row['id']}: not a list")
        comments = [Comment.from_dict(c) for c in raw_comments if isinstance(c, dict) and "id" in c]
        blob = row["blob"]
        return Memory(
            id=row["id"],
            title=row["title"],
            year=row["year"],
            story=row["story"],
            created_at=row["created_at"],
            likes=row["likes"],
            media_type=MediaType(row["media_type"]),
            media_url=row["media_url"],
            content_type=row["content_type"],
            user_id=row["user_id"],
            blob=bytes(blob) if blob is not None else None,
            comments=sorted(comments, key=lambda c: c.created_at),
        )
