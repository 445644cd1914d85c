"""Like toggling for emoji records.

A like toggle changes two things: the aggregate ``emojis.likes_count`` and the
per-user ``emoji_likes`` membership row.  The counter is adjusted with one
atomic storage call (floored at zero), then the membership row is inserted or
deleted to match.

The caller reports whether it *currently* likes the emoji (``is_liked``).  By
default that belief is trusted, which keeps a toggle at two storage calls.
With ``trust_client_like_state`` disabled the service derives the current
state from the membership rows instead and ignores the client's claim.
"""

from __future__ import annotations

import logging

from emojimaker.core.errors import EmojiNotFound
from emojimaker.core.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class LikeService:
    """Apply like/unlike transitions.

    Args:
        storage: Storage backend holding emojis and like memberships.
        trust_client_state: Use the caller's ``is_liked`` as the current state.
    """

    def __init__(self, storage: StorageBackend, trust_client_state: bool = True) -> None:
        self.storage = storage
        self.trust_client_state = trust_client_state

    def toggle(self, user_id: str, emoji_id: str, is_liked: bool) -> int:
        """Like or unlike ``emoji_id`` on behalf of ``user_id``.

        Args:
            user_id: Authenticated caller.
            emoji_id: Target emoji.
            is_liked: True when the caller currently likes the emoji and
                wants to unlike it; False to like it.

        Returns:
            The new ``likes_count``.

        Raises:
            EmojiNotFound: If the emoji does not exist.
            StorageFailure: If any storage call fails.
        """
        if not self.trust_client_state:
            server_state = emoji_id in self.storage.liked_emoji_ids(user_id)
            if server_state != is_liked:
                logger.info(
                    f"Client like state for {emoji_id} disagrees with server "
                    f"({is_liked} vs {server_state}); using server state"
                )
            is_liked = server_state

        delta = -1 if is_liked else 1
        new_count = self.storage.adjust_likes(emoji_id, delta)
        if new_count is None:
            raise EmojiNotFound(emoji_id)

        if is_liked:
            self.storage.remove_like(emoji_id, user_id)
        else:
            self.storage.add_like(emoji_id, user_id)

        logger.info(f"{user_id} {'unliked' if is_liked else 'liked'} {emoji_id}: {new_count}")
        return new_count
