"""Local storage backend: SQLite tables plus a filesystem bucket.

The bucket is a directory under ``config.static_dir`` which the API mounts at
``/static``, so public URLs are plain static file URLs.  This backend needs no
external service and is the default for development and tests.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from emojimaker.core.config import EmojiMakerConfig
from emojimaker.core.errors import StorageFailure
from emojimaker.core.records import EmojiRecord, NewEmoji, UserProfile

from .base import StorageBackend, storage_registry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS emojis (
    id TEXT PRIMARY KEY,
    image_url TEXT NOT NULL,
    prompt TEXT NOT NULL,
    creator_user_id TEXT NOT NULL REFERENCES profiles(user_id),
    likes_count INTEGER NOT NULL DEFAULT 0 CHECK (likes_count >= 0),
    created_at TIMESTAMP NOT NULL,
    storage_key TEXT
);

CREATE INDEX IF NOT EXISTS idx_emojis_created_at ON emojis(created_at DESC);

CREATE TABLE IF NOT EXISTS emoji_likes (
    emoji_id TEXT NOT NULL REFERENCES emojis(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (emoji_id, user_id)
);
"""


@storage_registry.register
class LocalStorageBackend(StorageBackend):
    """SQLite + filesystem implementation of :class:`StorageBackend`."""

    name = "local"

    def __init__(self, config: EmojiMakerConfig) -> None:
        super().__init__(config)
        self.db_path = Path(config.database_path)
        self.bucket_dir = Path(config.bucket_dir)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.bucket_dir.mkdir(parents=True, exist_ok=True)
        self._initialize_db()
        logger.info(f"Initialized local storage at {self.db_path} (bucket: {self.bucket_dir})")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_db(self) -> None:
        """Create the schema if it doesn't exist."""
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @staticmethod
    def _to_record(row: sqlite3.Row) -> EmojiRecord:
        return EmojiRecord(
            id=row["id"],
            image_url=row["image_url"],
            prompt=row["prompt"],
            creator_user_id=row["creator_user_id"],
            likes_count=row["likes_count"] or 0,
            created_at=row["created_at"],
            storage_key=row["storage_key"],
        )

    # -- profiles -----------------------------------------------------------

    def get_profile(self, user_id: str) -> UserProfile | None:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT user_id FROM profiles WHERE user_id = ? LIMIT 1",
                    (user_id,),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error reading profile {user_id}: {e}")
            raise StorageFailure(f"Failed to read user profile: {e}") from e

        return UserProfile(user_id=row["user_id"]) if row else None

    def insert_profile(self, user_id: str) -> UserProfile:
        try:
            with self._connect() as conn:
                # INSERT OR IGNORE keeps a concurrent bootstrap of the same user harmless
                conn.execute(
                    "INSERT OR IGNORE INTO profiles (user_id) VALUES (?)",
                    (user_id,),
                )
        except sqlite3.Error as e:
            logger.error(f"Error creating profile {user_id}: {e}")
            raise StorageFailure(f"Failed to create user profile: {e}") from e

        logger.info(f"Created profile: {user_id}")
        return UserProfile(user_id=user_id)

    # -- object storage -----------------------------------------------------

    def _object_path(self, key: str) -> Path:
        """Resolve ``key`` inside the bucket, rejecting path traversal."""
        path = (self.bucket_dir / key).resolve()
        bucket = self.bucket_dir.resolve()
        if not key or path.parent != bucket:
            logger.warning(f"Rejected object key outside bucket: {key!r}")
            raise StorageFailure(f"Invalid object key: {key!r}")
        return path

    def upload_object(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
        upsert: bool = True,
    ) -> None:
        path = self._object_path(key)
        if path.exists() and not upsert:
            raise StorageFailure(f"Failed to upload image: object {key} already exists")

        try:
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Error writing object {key}: {e}")
            raise StorageFailure(f"Failed to upload image: {e}") from e

        logger.debug(f"Stored {len(data)} bytes at {path} ({content_type}, max-age={cache_control})")

    def remove_object(self, key: str) -> None:
        path = self._object_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error removing object {key}: {e}")
            raise StorageFailure(f"Failed to remove image: {e}") from e

    def get_public_url(self, key: str) -> str:
        base = self.config.public_base_url.rstrip("/")
        return f"{base}/static/{self.config.bucket_name}/{key}"

    def read_object(self, key: str) -> bytes:
        path = self._object_path(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageFailure(f"Failed to read image: {e}") from e

    # -- emojis -------------------------------------------------------------

    def insert_emoji(self, emoji: NewEmoji) -> EmojiRecord:
        emoji_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc).isoformat()

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO emojis
                        (id, image_url, prompt, creator_user_id, likes_count, created_at, storage_key)
                    VALUES (?, ?, ?, ?, 0, ?, ?)
                    """,
                    (
                        emoji_id,
                        emoji.image_url,
                        emoji.prompt,
                        emoji.creator_user_id,
                        created_at,
                        emoji.storage_key,
                    ),
                )
        except sqlite3.Error as e:
            logger.error(f"Error inserting emoji: {e}")
            raise StorageFailure(f"Failed to save emoji: {e}") from e

        return EmojiRecord(
            id=emoji_id,
            created_at=created_at,
            likes_count=0,
            **emoji.model_dump(),
        )

    def get_emoji(self, emoji_id: str) -> EmojiRecord | None:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM emojis WHERE id = ? LIMIT 1",
                    (emoji_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageFailure(f"Failed to read emoji: {e}") from e

        return self._to_record(row) if row else None

    def list_emojis(self, *, creator_user_id: str | None = None) -> list[EmojiRecord]:
        query = "SELECT * FROM emojis"
        params: tuple = ()
        if creator_user_id is not None:
            query += " WHERE creator_user_id = ?"
            params = (creator_user_id,)
        query += " ORDER BY created_at DESC, rowid DESC"

        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StorageFailure(f"Failed to list emojis: {e}") from e

        return [self._to_record(row) for row in rows]

    def adjust_likes(self, emoji_id: str, delta: int) -> int | None:
        try:
            with self._connect() as conn:
                # The UPDATE takes the write lock, so the SELECT in the same
                # transaction observes exactly the value this call produced.
                cursor = conn.execute(
                    """
                    UPDATE emojis
                    SET likes_count = MAX(COALESCE(likes_count, 0) + ?, 0)
                    WHERE id = ?
                    """,
                    (delta, emoji_id),
                )
                if cursor.rowcount == 0:
                    return None
                row = conn.execute(
                    "SELECT likes_count FROM emojis WHERE id = ?",
                    (emoji_id,),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error updating likes for {emoji_id}: {e}")
            raise StorageFailure(f"Failed to update like: {e}") from e

        return row["likes_count"]

    # -- likes --------------------------------------------------------------

    def add_like(self, emoji_id: str, user_id: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO emoji_likes (emoji_id, user_id) VALUES (?, ?)",
                    (emoji_id, user_id),
                )
        except sqlite3.Error as e:
            raise StorageFailure(f"Failed to record like: {e}") from e

    def remove_like(self, emoji_id: str, user_id: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "DELETE FROM emoji_likes WHERE emoji_id = ? AND user_id = ?",
                    (emoji_id, user_id),
                )
        except sqlite3.Error as e:
            raise StorageFailure(f"Failed to remove like: {e}") from e

    def liked_emoji_ids(self, user_id: str) -> set[str]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT emoji_id FROM emoji_likes WHERE user_id = ?",
                    (user_id,),
                ).fetchall()
        except sqlite3.Error as e:
            raise StorageFailure(f"Failed to read likes: {e}") from e

        return {row["emoji_id"] for row in rows}

    def count_likes(self, emoji_id: str) -> int:
        """Count membership rows for one emoji (used to audit the counter)."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM emoji_likes WHERE emoji_id = ?",
                    (emoji_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageFailure(f"Failed to count likes: {e}") from e

        return row["n"]
