"""Abstract storage client used by the generation pipeline and like service.

A storage backend bundles the two external stores the service writes to:

- **object storage**: a bucket of PNG objects with public URLs
- **relational tables**: ``profiles``, ``emojis`` and ``emoji_likes``

Backends raise :class:`~emojimaker.core.errors.StorageFailure` for any error
reported by the underlying store; callers never see driver exceptions.

The like counter is never updated with a read-then-write.  Backends expose
:meth:`StorageBackend.adjust_likes`, which applies a signed delta in a single
storage-side operation and floors the result at zero.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from emojimaker.core.config import EmojiMakerConfig
from emojimaker.core.records import EmojiRecord, NewEmoji, UserProfile
from emojimaker.core.registry import BackendRegistry

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    Attributes
    ----------
    name : str
        Registry name, matched against ``config.storage_backend``
    config : EmojiMakerConfig
        Configuration object
    """

    name: str = "base"

    def __init__(self, config: EmojiMakerConfig) -> None:
        self.config = config

    # -- profiles -----------------------------------------------------------

    @abstractmethod
    def get_profile(self, user_id: str) -> UserProfile | None:
        """Return the profile row for ``user_id`` or None if absent."""

    @abstractmethod
    def insert_profile(self, user_id: str) -> UserProfile:
        """Insert a profile row; inserting an existing user is not an error."""

    # -- object storage -----------------------------------------------------

    @abstractmethod
    def upload_object(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
        upsert: bool = True,
    ) -> None:
        """Store ``data`` under ``key`` in the bucket."""

    @abstractmethod
    def remove_object(self, key: str) -> None:
        """Delete the object at ``key``; a missing object is not an error."""

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        """Return a publicly fetchable URL for ``key``."""

    @abstractmethod
    def read_object(self, key: str) -> bytes:
        """Return the raw bytes stored at ``key``."""

    # -- emojis -------------------------------------------------------------

    @abstractmethod
    def insert_emoji(self, emoji: NewEmoji) -> EmojiRecord:
        """Insert an emoji row and return it with its generated id."""

    @abstractmethod
    def get_emoji(self, emoji_id: str) -> EmojiRecord | None:
        """Return one emoji row or None if absent."""

    @abstractmethod
    def list_emojis(self, *, creator_user_id: str | None = None) -> list[EmojiRecord]:
        """Return emoji rows newest first, optionally for one creator."""

    @abstractmethod
    def adjust_likes(self, emoji_id: str, delta: int) -> int | None:
        """Atomically add ``delta`` to ``likes_count``, flooring at zero.

        Returns:
            The new count, or None if the emoji row does not exist.
        """

    # -- likes --------------------------------------------------------------

    @abstractmethod
    def add_like(self, emoji_id: str, user_id: str) -> None:
        """Upsert the ``(emoji_id, user_id)`` membership row."""

    @abstractmethod
    def remove_like(self, emoji_id: str, user_id: str) -> None:
        """Delete the ``(emoji_id, user_id)`` membership row if present."""

    @abstractmethod
    def liked_emoji_ids(self, user_id: str) -> set[str]:
        """Return the ids of every emoji ``user_id`` currently likes."""

    def close(self) -> None:
        """Release connections held by the backend."""


# Global storage backend registry
storage_registry: BackendRegistry[StorageBackend] = BackendRegistry("storage backend")


def create_storage(config: EmojiMakerConfig) -> StorageBackend:
    """Instantiate the storage backend named by ``config.storage_backend``."""
    return storage_registry.instantiate(config.storage_backend, config)
