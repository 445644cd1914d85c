"""Client-side view state for the emoji gallery.

Modules
-------
models
    ``EmojiViewModel`` tiles and the ``LikeAction`` optimistic-update state
    machine.
state
    ``GalleryState``: ordered tiles, placeholders and object URL lifecycle.
client
    ``EmojiClient``: async HTTP client driving a ``GalleryState``.
"""

from .client import EmojiClient, EmojiClientError
from .models import EmojiViewModel, LikeAction, LikeActionStatus
from .state import GalleryState, ObjectUrlRegistry

__all__ = [
    "EmojiClient",
    "EmojiClientError",
    "EmojiViewModel",
    "GalleryState",
    "LikeAction",
    "LikeActionStatus",
    "ObjectUrlRegistry",
]
