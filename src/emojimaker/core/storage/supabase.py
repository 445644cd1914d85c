"""Supabase storage backend over the PostgREST and Storage HTTP APIs.

Talks to Supabase directly with ``httpx`` rather than through a client SDK;
the service only needs a dozen REST calls.  The schema, bucket and the
``adjust_emoji_likes`` function this backend relies on are created by
``sql/supabase_schema.sql``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from emojimaker.core.config import EmojiMakerConfig
from emojimaker.core.errors import ConfigurationMissing, StorageFailure
from emojimaker.core.records import EmojiRecord, NewEmoji, UserProfile

from .base import StorageBackend, storage_registry

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Extract the most useful error text from a Supabase error response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(payload, dict):
        for field in ("message", "error_description", "error", "msg"):
            if payload.get(field):
                return str(payload[field])
    return f"HTTP {response.status_code}"


@storage_registry.register
class SupabaseStorageBackend(StorageBackend):
    """Supabase implementation of :class:`StorageBackend`.

    Args:
        config: Configuration providing ``supabase_url`` and ``supabase_key``.
        client: Optional pre-built ``httpx.Client`` (tests inject one backed
            by ``httpx.MockTransport``).

    Raises:
        ConfigurationMissing: If the project URL or key is not configured.
    """

    name = "supabase"

    def __init__(self, config: EmojiMakerConfig, client: httpx.Client | None = None) -> None:
        super().__init__(config)

        if not config.supabase_url or config.supabase_key is None:
            raise ConfigurationMissing("Supabase URL and key must be configured")

        self.base_url = config.supabase_url.rstrip("/")
        self.bucket = config.bucket_name
        key = config.supabase_key.get_secret_value()

        self._client = client or httpx.Client(timeout=30.0)
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
        }
        logger.info(f"Initialized Supabase storage for {self.base_url} (bucket: {self.bucket})")

    # -- transport helpers --------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        action: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and convert transport or HTTP errors to StorageFailure."""
        try:
            response = self._client.request(
                method,
                f"{self.base_url}{path}",
                headers={**self._headers, **(headers or {})},
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.error(f"{action}: {e}")
            raise StorageFailure(f"{action}: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"{action}: {response.status_code} {message}")
            raise StorageFailure(f"{action}: {message}")

        return response

    def _rows(self, response: httpx.Response) -> list[dict]:
        payload = response.json() if response.content else []
        return payload if isinstance(payload, list) else [payload]

    # -- profiles -----------------------------------------------------------

    def get_profile(self, user_id: str) -> UserProfile | None:
        response = self._request(
            "GET",
            "/rest/v1/profiles",
            "Failed to read user profile",
            params={"select": "user_id", "user_id": f"eq.{user_id}", "limit": "1"},
        )
        rows = self._rows(response)
        return UserProfile(user_id=rows[0]["user_id"]) if rows else None

    def insert_profile(self, user_id: str) -> UserProfile:
        self._request(
            "POST",
            "/rest/v1/profiles",
            "Failed to create user profile",
            headers={"Prefer": "resolution=ignore-duplicates,return=minimal"},
            json=[{"user_id": user_id}],
        )
        logger.info(f"Created profile: {user_id}")
        return UserProfile(user_id=user_id)

    # -- object storage -----------------------------------------------------

    def upload_object(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
        upsert: bool = True,
    ) -> None:
        self._request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{key}",
            "Failed to upload image",
            headers={
                "Content-Type": content_type,
                "Cache-Control": f"max-age={cache_control}",
                "x-upsert": "true" if upsert else "false",
            },
            content=data,
        )

    def remove_object(self, key: str) -> None:
        self._request(
            "DELETE",
            f"/storage/v1/object/{self.bucket}/{key}",
            "Failed to remove image",
        )

    def get_public_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{key}"

    def read_object(self, key: str) -> bytes:
        response = self._request(
            "GET",
            f"/storage/v1/object/public/{self.bucket}/{key}",
            "Failed to read image",
        )
        return response.content

    # -- emojis -------------------------------------------------------------

    def insert_emoji(self, emoji: NewEmoji) -> EmojiRecord:
        response = self._request(
            "POST",
            "/rest/v1/emojis",
            "Failed to save emoji",
            headers={"Prefer": "return=representation"},
            json=[emoji.model_dump()],
        )
        rows = self._rows(response)
        if not rows:
            raise StorageFailure("Failed to save emoji: no row returned")
        return EmojiRecord.model_validate(rows[0])

    def get_emoji(self, emoji_id: str) -> EmojiRecord | None:
        response = self._request(
            "GET",
            "/rest/v1/emojis",
            "Failed to read emoji",
            params={"select": "*", "id": f"eq.{emoji_id}", "limit": "1"},
        )
        rows = self._rows(response)
        return EmojiRecord.model_validate(rows[0]) if rows else None

    def list_emojis(self, *, creator_user_id: str | None = None) -> list[EmojiRecord]:
        params = {"select": "*", "order": "created_at.desc"}
        if creator_user_id is not None:
            params["creator_user_id"] = f"eq.{creator_user_id}"

        response = self._request("GET", "/rest/v1/emojis", "Failed to list emojis", params=params)
        return [EmojiRecord.model_validate(row) for row in self._rows(response)]

    def adjust_likes(self, emoji_id: str, delta: int) -> int | None:
        response = self._request(
            "POST",
            "/rest/v1/rpc/adjust_emoji_likes",
            "Failed to update like",
            json={"p_emoji_id": emoji_id, "p_delta": delta},
        )
        result = response.json()
        return None if result is None else int(result)

    # -- likes --------------------------------------------------------------

    def add_like(self, emoji_id: str, user_id: str) -> None:
        self._request(
            "POST",
            "/rest/v1/emoji_likes",
            "Failed to record like",
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            params={"on_conflict": "emoji_id,user_id"},
            json=[{"emoji_id": emoji_id, "user_id": user_id}],
        )

    def remove_like(self, emoji_id: str, user_id: str) -> None:
        self._request(
            "DELETE",
            "/rest/v1/emoji_likes",
            "Failed to remove like",
            params={"emoji_id": f"eq.{emoji_id}", "user_id": f"eq.{user_id}"},
        )

    def liked_emoji_ids(self, user_id: str) -> set[str]:
        response = self._request(
            "GET",
            "/rest/v1/emoji_likes",
            "Failed to read likes",
            params={"select": "emoji_id", "user_id": f"eq.{user_id}"},
        )
        return {row["emoji_id"] for row in self._rows(response)}

    def close(self) -> None:
        self._client.close()
