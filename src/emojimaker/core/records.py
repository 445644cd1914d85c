"""Persistent record types shared by the storage backends.

These mirror the three tables the service owns::

    profiles(user_id)
    emojis(id, image_url, prompt, creator_user_id, likes_count, created_at, storage_key)
    emoji_likes(emoji_id, user_id)

Backends return these models rather than raw rows so the pipeline and the API
layer never depend on a particular driver's row format.  Like membership rows
are only ever read as sets of emoji ids, so they have no model of their own.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    """One row per authenticated user who has generated at least one emoji."""

    user_id: str


class EmojiRecord(BaseModel):
    """Metadata for a generated emoji.

    Attributes:
        id: Storage-generated identifier.
        image_url: Public URL of the PNG in object storage.
        prompt: The prompt exactly as the user typed it (not the templated one).
        creator_user_id: Identity provider subject of the creator.
        likes_count: Aggregate like count, never negative.
        created_at: Insert timestamp.
        storage_key: Object key inside the bucket, used to find orphans.
    """

    id: str
    image_url: str
    prompt: str
    creator_user_id: str
    likes_count: int = Field(default=0, ge=0)
    created_at: datetime
    storage_key: str | None = None


class NewEmoji(BaseModel):
    """Fields supplied by the caller when inserting an emoji row."""

    image_url: str
    prompt: str
    creator_user_id: str
    storage_key: str | None = None
