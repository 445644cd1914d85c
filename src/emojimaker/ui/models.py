"""Data models for the client-side gallery state."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


@dataclass
class EmojiViewModel:
    """One tile in the gallery.

    A view model is either a **placeholder** for a generation still in flight
    (``url`` is None) or a displayable emoji.  Freshly generated emojis are
    shown through a local object URL (``blob:...``) until the gallery is next
    refreshed from the server.

    Attributes:
        id: Stable local identity (placeholder id or server id).
        prompt: The prompt as typed.
        url: Displayable URL, or None while generating.
        likes: Like count as last known to the client.
        is_liked: Whether the current user likes this emoji.
        emoji_id: Server id, once known.  None for placeholders.
    """

    id: str
    prompt: str
    url: str | None = None
    likes: int = 0
    is_liked: bool = False
    emoji_id: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.url is None

    @property
    def has_object_url(self) -> bool:
        return bool(self.url and self.url.startswith("blob:"))

    @classmethod
    def placeholder(cls, prompt: str) -> "EmojiViewModel":
        return cls(id=f"pending-{uuid.uuid4().hex}", prompt=prompt)

    @classmethod
    def from_api(cls, payload: dict) -> "EmojiViewModel":
        """Build a view model from an ``EmojiOut`` JSON object."""
        return cls(
            id=payload["id"],
            prompt=payload["prompt"],
            url=payload["image_url"],
            likes=payload.get("likes_count", 0),
            is_liked=payload.get("isLiked", False),
            emoji_id=payload["id"],
        )


class LikeActionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class LikeAction:
    """One optimistic like/unlike, tracked from click to server response.

    Transitions are ``PENDING -> CONFIRMED`` or ``PENDING -> ROLLED_BACK``;
    anything else raises ``ValueError``.

    Attributes:
        view_id: View model the action applies to.
        previous_likes: Count before the optimistic change.
        previous_is_liked: Like state before the optimistic change; this is
            the ``isLiked`` value sent to the server.
    """

    view_id: str
    previous_likes: int
    previous_is_liked: bool
    action_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: LikeActionStatus = LikeActionStatus.PENDING

    @property
    def target_is_liked(self) -> bool:
        return not self.previous_is_liked

    @property
    def optimistic_likes(self) -> int:
        if self.previous_is_liked:
            return max(self.previous_likes - 1, 0)
        return self.previous_likes + 1

    def _transition(self, status: LikeActionStatus) -> None:
        if self.status is not LikeActionStatus.PENDING:
            raise ValueError(
                f"Like action {self.action_id} is already {self.status.value}, "
                f"cannot move to {status.value}"
            )
        self.status = status

    def confirm(self) -> None:
        self._transition(LikeActionStatus.CONFIRMED)

    def roll_back(self) -> None:
        self._transition(LikeActionStatus.ROLLED_BACK)
