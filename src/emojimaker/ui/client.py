"""Async HTTP client that drives a :class:`GalleryState` against the API.

Every interactive action follows the same shape: change local state first,
call the server, then either settle the change or undo it and raise
:class:`EmojiClientError` with the server's message.

Usage
-----
::

    async with EmojiClient("http://localhost:8000", headers={"Authorization": f"Bearer {jwt}"}) as client:
        await client.refresh()
        emoji = await client.submit("a happy cat")
        await client.toggle_like(emoji.id)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import unquote

import httpx

from emojimaker.core.errors import EmojiMakerError
from emojimaker.core.images import download_filename

from .models import EmojiViewModel
from .state import GalleryState

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r'filename="?([^";]+)"?')
_FILENAME_UTF8_RE = re.compile(r"filename\*=UTF-8''([^;]+)", re.IGNORECASE)


class EmojiClientError(EmojiMakerError):
    """An action failed; ``message`` is suitable for an alert."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_from_response(response: httpx.Response, fallback: str) -> EmojiClientError:
    try:
        payload = response.json()
        message = payload.get("error") if isinstance(payload, dict) else None
    except ValueError:
        message = None
    return EmojiClientError(
        message or f"{fallback} (HTTP {response.status_code})",
        status_code=response.status_code,
    )


class EmojiClient:
    """Gallery client for one signed-in user.

    Args:
        base_url: API root, e.g. ``http://localhost:8000``.
        headers: Extra headers sent with every request (session token).
        http: Optional pre-built ``httpx.AsyncClient``; when given,
            ``base_url`` and ``headers`` are ignored and the caller owns it.
        state: Gallery state to drive; a fresh one by default.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        headers: dict[str, str] | None = None,
        http: httpx.AsyncClient | None = None,
        state: GalleryState | None = None,
        timeout: float = 180.0,
    ) -> None:
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        self.state = state or GalleryState()

    async def __aenter__(self) -> "EmojiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release object URLs and close the HTTP client if we created it."""
        self.state.close()
        if self._owns_http:
            await self.http.aclose()

    async def refresh(self, page: int = 1, per_page: int = 20) -> list[EmojiViewModel]:
        """Reload the gallery from ``GET /api/emojis``."""
        response = await self.http.get("/api/emojis", params={"page": page, "per_page": per_page})
        if response.is_error:
            raise _error_from_response(response, "Failed to load emojis")
        self.state.replace_all(response.json()["emojis"])
        return self.state.emojis

    async def submit(self, prompt: str) -> EmojiViewModel:
        """Generate an emoji for ``prompt``.

        A placeholder is shown immediately.  Several submissions may run
        concurrently; each resolves its own placeholder.

        Raises:
            EmojiClientError: If the prompt is blank or generation failed.
                The placeholder is removed before raising.
        """
        if not prompt or not prompt.strip():
            raise EmojiClientError("Prompt is required", status_code=400)

        placeholder_id = self.state.add_placeholder(prompt)
        try:
            response = await self.http.post("/api/generate", json={"prompt": prompt})
        except httpx.HTTPError as e:
            self.state.discard_placeholder(placeholder_id)
            logger.error(f"Failed to generate emoji: {e}")
            raise EmojiClientError(f"Failed to generate emoji: {e}") from e

        if response.is_error:
            self.state.discard_placeholder(placeholder_id)
            raise _error_from_response(response, "Failed to generate emoji")

        emoji = self.state.resolve_placeholder(
            placeholder_id,
            response.content,
            emoji_id=response.headers.get("X-Emoji-Id"),
            content_type=response.headers.get("Content-Type", "image/png"),
        )
        if emoji is None:
            raise EmojiClientError("Emoji was removed before generation finished", status_code=409)
        return emoji

    async def toggle_like(self, view_id: str) -> int:
        """Like or unlike a tile optimistically.

        Returns:
            The server's new like count.

        Raises:
            EmojiClientError: If the tile has no server id yet or the server
                rejected the change (after rolling back).
        """
        emoji = self.state.get(view_id)
        if emoji is None:
            raise EmojiClientError(f"No emoji with id {view_id}", status_code=404)
        if emoji.emoji_id is None:
            raise EmojiClientError("Emoji is still being generated", status_code=409)

        action = self.state.begin_like(view_id)
        try:
            response = await self.http.post(
                "/api/emojis/like",
                json={"emojiId": emoji.emoji_id, "isLiked": action.previous_is_liked},
            )
        except httpx.HTTPError as e:
            self.state.roll_back_like(action)
            raise EmojiClientError(f"Failed to update like: {e}") from e

        if response.is_error:
            self.state.roll_back_like(action)
            raise _error_from_response(response, "Failed to update like")

        likes = response.json()["likes"]
        self.state.confirm_like(action, likes)
        return likes

    async def download(self, view_id: str, dest_dir: Path) -> Path:
        """Save a tile's image into ``dest_dir`` and return the file path.

        Freshly generated tiles are written from their local object URL;
        others are fetched from the download endpoint.
        """
        emoji = self.state.get(view_id)
        if emoji is None or emoji.is_placeholder:
            raise EmojiClientError("Nothing to download yet", status_code=409)

        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)

        if emoji.has_object_url:
            path = dest_dir / download_filename(emoji.prompt)
            path.write_bytes(self.state.url_registry.get(emoji.url))
            return path

        response = await self.http.get(f"/api/emojis/{emoji.emoji_id}/download")
        if response.is_error:
            raise _error_from_response(response, "Failed to download emoji")

        disposition = response.headers.get("Content-Disposition", "")
        utf8_match = _FILENAME_UTF8_RE.search(disposition)
        match = _FILENAME_RE.search(disposition)
        if utf8_match:
            filename = Path(unquote(utf8_match.group(1).strip())).name
        elif match:
            filename = Path(match.group(1)).name
        else:
            filename = f"emoji-{emoji.emoji_id}.png"
        path = dest_dir / filename
        path.write_bytes(response.content)
        return path
