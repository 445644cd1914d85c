"""Client-side gallery state.

:class:`GalleryState` is the in-memory list of emoji tiles a client shows,
newest first.  It owns two kinds of transient resources:

- **Placeholders** for generations still in flight.  Each submission gets its
  own placeholder id, and completion updates that placeholder in place, so
  concurrent submissions keep a stable order regardless of which finishes
  first.
- **Object URLs** for freshly generated image bytes, held in an
  :class:`ObjectUrlRegistry`.  A URL is released when its view model leaves
  the list or when the state is closed.

Likes are applied optimistically through :class:`~emojimaker.ui.models.LikeAction`
objects.  When several toggles on the same tile overlap, the last server
response wins for the count and only the latest action may roll the tile back.
"""

from __future__ import annotations

import logging
import uuid

from .models import EmojiViewModel, LikeAction

logger = logging.getLogger(__name__)


class ObjectUrlRegistry:
    """In-memory ``blob:`` URL table for locally held image bytes."""

    scheme = "blob:emojimaker/"

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, str]] = {}

    def create(self, data: bytes, content_type: str = "image/png") -> str:
        url = f"{self.scheme}{uuid.uuid4().hex}"
        self._objects[url] = (data, content_type)
        return url

    def get(self, url: str) -> bytes:
        """Return the bytes behind ``url``.

        Raises:
            KeyError: If the URL was never created or has been revoked.
        """
        return self._objects[url][0]

    def revoke(self, url: str) -> None:
        if self._objects.pop(url, None) is not None:
            logger.debug(f"Revoked {url}")

    def revoke_all(self) -> None:
        self._objects.clear()

    def __contains__(self, url: object) -> bool:
        return url in self._objects

    def __len__(self) -> int:
        return len(self._objects)


class GalleryState:
    """Ordered emoji view models plus their object URLs and pending likes."""

    def __init__(self, url_registry: ObjectUrlRegistry | None = None) -> None:
        self.emojis: list[EmojiViewModel] = []
        self.url_registry = url_registry or ObjectUrlRegistry()
        self._latest_like: dict[str, str] = {}

    def get(self, view_id: str) -> EmojiViewModel | None:
        return next((emoji for emoji in self.emojis if emoji.id == view_id), None)

    def _require(self, view_id: str) -> EmojiViewModel:
        emoji = self.get(view_id)
        if emoji is None:
            raise KeyError(f"No emoji with id {view_id}")
        return emoji

    def _release(self, emoji: EmojiViewModel) -> None:
        if emoji.has_object_url:
            self.url_registry.revoke(emoji.url)

    # -- generation ---------------------------------------------------------

    def add_placeholder(self, prompt: str) -> str:
        """Insert a loading tile at the head of the list and return its id."""
        placeholder = EmojiViewModel.placeholder(prompt)
        self.emojis.insert(0, placeholder)
        return placeholder.id

    def resolve_placeholder(
        self,
        placeholder_id: str,
        image_bytes: bytes,
        *,
        emoji_id: str | None = None,
        content_type: str = "image/png",
    ) -> EmojiViewModel | None:
        """Attach generated bytes to a placeholder, keeping its position.

        Returns:
            The updated view model, or None if the placeholder was removed
            meanwhile (in which case no object URL is created).
        """
        placeholder = self.get(placeholder_id)
        if placeholder is None:
            logger.info(f"Placeholder {placeholder_id} gone before generation finished")
            return None

        placeholder.url = self.url_registry.create(image_bytes, content_type)
        placeholder.emoji_id = emoji_id
        return placeholder

    def discard_placeholder(self, placeholder_id: str) -> None:
        """Remove a placeholder after its generation failed."""
        self.remove(placeholder_id)

    def remove(self, view_id: str) -> None:
        """Remove a tile and release its object URL."""
        emoji = self.get(view_id)
        if emoji is None:
            return
        self.emojis.remove(emoji)
        self._release(emoji)
        self._latest_like.pop(view_id, None)

    def replace_all(self, payloads: list[dict]) -> None:
        """Replace displayed emojis with a server listing.

        In-flight placeholders stay at the head of the list; every other tile
        is replaced and its object URL released.
        """
        placeholders = [emoji for emoji in self.emojis if emoji.is_placeholder]
        for emoji in self.emojis:
            if not emoji.is_placeholder:
                self._release(emoji)
                self._latest_like.pop(emoji.id, None)
        self.emojis = placeholders + [EmojiViewModel.from_api(p) for p in payloads]

    # -- likes --------------------------------------------------------------

    def begin_like(self, view_id: str) -> LikeAction:
        """Apply an optimistic like/unlike and return the action tracking it.

        Raises:
            KeyError: If no tile has ``view_id``.
        """
        emoji = self._require(view_id)
        action = LikeAction(
            view_id=view_id,
            previous_likes=emoji.likes,
            previous_is_liked=emoji.is_liked,
        )
        emoji.likes = action.optimistic_likes
        emoji.is_liked = action.target_is_liked
        self._latest_like[view_id] = action.action_id
        return action

    def _is_latest(self, action: LikeAction) -> bool:
        return self._latest_like.get(action.view_id) == action.action_id

    def confirm_like(self, action: LikeAction, likes: int) -> None:
        """Record the server's count for a completed action."""
        action.confirm()
        emoji = self.get(action.view_id)
        if emoji is None:
            return
        emoji.likes = likes
        if self._is_latest(action):
            emoji.is_liked = action.target_is_liked
            del self._latest_like[action.view_id]

    def roll_back_like(self, action: LikeAction) -> None:
        """Undo an optimistic change after the server rejected it.

        Only the most recent action on a tile restores its previous state;
        an older failed action must not clobber a newer optimistic change.
        """
        action.roll_back()
        emoji = self.get(action.view_id)
        if emoji is None or not self._is_latest(action):
            return
        emoji.likes = action.previous_likes
        emoji.is_liked = action.previous_is_liked
        del self._latest_like[action.view_id]

    # -- teardown -----------------------------------------------------------

    def close(self) -> None:
        """Release every object URL (the owning view is going away)."""
        for emoji in self.emojis:
            self._release(emoji)
        self.url_registry.revoke_all()
        self._latest_like.clear()
