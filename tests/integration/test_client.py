"""Integration tests for emojimaker.ui.client — the gallery client against the app.

The client talks to the real application in-process through
``httpx.ASGITransport``; each test drives it with ``asyncio.run``.
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest

from emojimaker.core.errors import StorageFailure
from emojimaker.ui.client import EmojiClient, EmojiClientError


def _client(app, user: str | None = "u1") -> EmojiClient:
    headers = {"X-User-Id": user} if user else {}
    http = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
        headers=headers,
    )
    return EmojiClient(http=http)


def run(coro_fn):
    """Run ``coro_fn()`` to completion on a fresh event loop."""
    return asyncio.run(coro_fn())


# ---------------------------------------------------------------------------
# Generation.
# ---------------------------------------------------------------------------


class TestSubmit:
    def test_submit_resolves_placeholder(self, app, png_bytes):
        client = _client(app)

        async def scenario():
            emoji = await client.submit("a happy cat")
            await client.http.aclose()
            return emoji

        emoji = run(scenario)

        assert emoji.emoji_id
        assert emoji.has_object_url
        assert client.state.url_registry.get(emoji.url) == png_bytes
        assert client.state.emojis == [emoji]

    def test_concurrent_submissions(self, app):
        client = _client(app)

        async def scenario():
            results = await asyncio.gather(client.submit("one"), client.submit("two"))
            await client.http.aclose()
            return results

        first, second = run(scenario)

        assert first.emoji_id != second.emoji_id
        assert [vm.prompt for vm in client.state.emojis] == ["two", "one"]
        assert not any(vm.is_placeholder for vm in client.state.emojis)

    def test_blank_prompt_rejected_locally(self, app):
        client = _client(app)
        with pytest.raises(EmojiClientError) as exc_info:
            run(lambda: client.submit("  "))
        assert exc_info.value.status_code == 400
        assert client.state.emojis == []

    def test_server_error_removes_placeholder(self, app, fake_provider):
        fake_provider.configured = False
        client = _client(app)

        with pytest.raises(EmojiClientError, match="Replicate API token not configured"):
            run(lambda: client.submit("a cat"))
        assert client.state.emojis == []

    def test_anonymous_submit(self, app):
        client = _client(app, user=None)
        with pytest.raises(EmojiClientError) as exc_info:
            run(lambda: client.submit("a cat"))
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Unauthorized"


# ---------------------------------------------------------------------------
# Likes.
# ---------------------------------------------------------------------------


class TestToggleLike:
    def test_like_and_unlike(self, app, storage):
        client = _client(app)

        async def scenario():
            emoji = await client.submit("a happy cat")
            liked = await client.toggle_like(emoji.id)
            unliked = await client.toggle_like(emoji.id)
            return emoji, liked, unliked

        emoji, liked, unliked = run(scenario)

        assert (liked, unliked) == (1, 0)
        assert emoji.likes == 0
        assert emoji.is_liked is False
        assert storage.count_likes(emoji.emoji_id) == 0

    def test_rejected_like_rolls_back(self, app, storage, seeded_emoji):
        client = _client(app)

        async def scenario():
            await client.refresh()
            with patch.object(storage, "adjust_likes", side_effect=StorageFailure("Failed to update like: x")):
                await client.toggle_like(seeded_emoji.id)

        with pytest.raises(EmojiClientError, match="Failed to update like"):
            run(scenario)

        vm = client.state.get(seeded_emoji.id)
        assert (vm.likes, vm.is_liked) == (0, False)

    def test_placeholder_cannot_be_liked(self, app):
        client = _client(app)
        pid = client.state.add_placeholder("pending")
        with pytest.raises(EmojiClientError) as exc_info:
            run(lambda: client.toggle_like(pid))
        assert exc_info.value.status_code == 409


# ---------------------------------------------------------------------------
# Refresh and download.
# ---------------------------------------------------------------------------


class TestRefreshAndDownload:
    def test_refresh_replaces_object_urls(self, app):
        client = _client(app)

        async def scenario():
            emoji = await client.submit("a happy cat")
            url = emoji.url
            await client.refresh()
            return emoji.emoji_id, url

        emoji_id, url = run(scenario)

        assert url not in client.state.url_registry
        refreshed = client.state.get(emoji_id)
        assert refreshed.url.startswith("/static/emojis/")

    def test_download_fresh_tile(self, app, temp_dir, png_bytes):
        client = _client(app)

        async def scenario():
            emoji = await client.submit("a happy cat")
            return await client.download(emoji.id, temp_dir / "out")

        path = run(scenario)
        assert path.name == "emoji-a-happy-cat.png"
        assert path.read_bytes() == png_bytes

    def test_download_from_server(self, app, temp_dir, png_bytes):
        client = _client(app)

        async def scenario():
            await client.submit("a happy cat")
            await client.refresh()
            return await client.download(client.state.emojis[0].id, temp_dir)

        path = run(scenario)
        assert path.name == "emoji-a-happy-cat.png"
        assert path.read_bytes() == png_bytes

    def test_download_non_ascii_from_server(self, app, temp_dir, png_bytes):
        client = _client(app)

        async def scenario():
            await client.submit("猫 cat")
            await client.refresh()
            return await client.download(client.state.emojis[0].id, temp_dir)

        path = run(scenario)
        assert path.name == "emoji-猫-cat.png"
        assert path.read_bytes() == png_bytes

    def test_close_releases_urls(self, app):
        client = _client(app)

        async def scenario():
            await client.submit("a happy cat")
            await client.aclose()

        run(scenario)
        assert len(client.state.url_registry) == 0
