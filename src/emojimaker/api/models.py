"""Pydantic request and response models for the Emoji Maker API.

Request bodies keep the camelCase keys the browser client sends
(``emojiId``, ``isLiked``); Python code uses the snake_case attribute names.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.
LikeRequest
    Payload for ``POST /api/emojis/like``.
LikeResponse
    Result of a like toggle.
EmojiOut
    One emoji as returned by the gallery endpoints.
EmojiPage
    Paginated gallery listing.
ErrorResponse
    Body of every error response.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from emojimaker.core.records import EmojiRecord


class GenerateRequest(BaseModel):
    """Request body for ``POST /api/generate``.

    ``prompt`` is optional at the schema level so that a missing prompt is
    reported as the same 400 "Prompt is required" error as an empty one.
    """

    prompt: str | None = Field(
        default=None,
        description="Plain description of the emoji, e.g. 'a happy cat'.",
    )


class LikeRequest(BaseModel):
    """Request body for ``POST /api/emojis/like``.

    Attributes:
        emoji_id: Target emoji id (``emojiId`` on the wire).
        is_liked: The client's belief that it currently likes the emoji
            (``isLiked`` on the wire).  True means "unlike it".
    """

    model_config = ConfigDict(populate_by_name=True)

    emoji_id: str = Field(..., alias="emojiId", min_length=1)
    is_liked: bool = Field(..., alias="isLiked")


class LikeResponse(BaseModel):
    success: bool = True
    likes: int


class ErrorResponse(BaseModel):
    error: str


class EmojiOut(BaseModel):
    """One gallery entry, augmented with the caller's like state."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    image_url: str
    prompt: str
    creator_user_id: str
    likes_count: int
    created_at: datetime
    is_liked: bool = Field(default=False, alias="isLiked")

    @classmethod
    def from_record(cls, record: EmojiRecord, liked_ids: set[str]) -> "EmojiOut":
        return cls(
            id=record.id,
            image_url=record.image_url,
            prompt=record.prompt,
            creator_user_id=record.creator_user_id,
            likes_count=record.likes_count,
            created_at=record.created_at,
            is_liked=record.id in liked_ids,
        )


class EmojiPage(BaseModel):
    total: int
    page: int
    per_page: int
    pages: int
    emojis: list[EmojiOut]
