"""Tests for emojimaker.ui — view models, like actions and gallery state.

Tests cover:
- Placeholder lifecycle under concurrent submissions.
- Object URL creation and release.
- Optimistic likes: confirm, roll back, and overlapping actions.
"""

from __future__ import annotations

import pytest

from emojimaker.ui.models import EmojiViewModel, LikeAction, LikeActionStatus
from emojimaker.ui.state import GalleryState, ObjectUrlRegistry


def _payload(emoji_id: str, likes: int = 0, liked: bool = False) -> dict:
    return {
        "id": emoji_id,
        "image_url": f"/static/emojis/{emoji_id}.png",
        "prompt": f"prompt {emoji_id}",
        "creator_user_id": "u1",
        "likes_count": likes,
        "created_at": "2026-01-01T00:00:00Z",
        "isLiked": liked,
    }


# ---------------------------------------------------------------------------
# Models.
# ---------------------------------------------------------------------------


class TestEmojiViewModel:
    def test_placeholder(self):
        vm = EmojiViewModel.placeholder("a cat")
        assert vm.is_placeholder
        assert vm.id.startswith("pending-")
        assert vm.emoji_id is None

    def test_from_api(self):
        vm = EmojiViewModel.from_api(_payload("e1", likes=4, liked=True))
        assert vm.id == vm.emoji_id == "e1"
        assert vm.likes == 4
        assert vm.is_liked is True
        assert not vm.is_placeholder
        assert not vm.has_object_url


class TestLikeAction:
    def test_like_from_unliked(self):
        action = LikeAction(view_id="e1", previous_likes=2, previous_is_liked=False)
        assert action.target_is_liked is True
        assert action.optimistic_likes == 3

    def test_unlike_never_negative(self):
        action = LikeAction(view_id="e1", previous_likes=0, previous_is_liked=True)
        assert action.optimistic_likes == 0

    def test_single_transition(self):
        action = LikeAction(view_id="e1", previous_likes=0, previous_is_liked=False)
        action.confirm()
        assert action.status is LikeActionStatus.CONFIRMED
        with pytest.raises(ValueError):
            action.roll_back()


# ---------------------------------------------------------------------------
# Object URLs.
# ---------------------------------------------------------------------------


class TestObjectUrlRegistry:
    def test_create_get_revoke(self):
        registry = ObjectUrlRegistry()
        url = registry.create(b"png")
        assert url.startswith("blob:")
        assert registry.get(url) == b"png"

        registry.revoke(url)
        assert url not in registry
        with pytest.raises(KeyError):
            registry.get(url)

    def test_urls_unique(self):
        registry = ObjectUrlRegistry()
        assert registry.create(b"a") != registry.create(b"a")
        assert len(registry) == 2


# ---------------------------------------------------------------------------
# Generation placeholders.
# ---------------------------------------------------------------------------


class TestPlaceholders:
    def test_newest_first(self):
        state = GalleryState()
        first = state.add_placeholder("one")
        second = state.add_placeholder("two")
        assert [vm.id for vm in state.emojis] == [second, first]

    def test_out_of_order_completion_keeps_positions(self):
        """Each submission resolves its own placeholder."""
        state = GalleryState()
        first = state.add_placeholder("one")
        second = state.add_placeholder("two")

        state.resolve_placeholder(first, b"one-bytes", emoji_id="e1")
        state.resolve_placeholder(second, b"two-bytes", emoji_id="e2")

        assert [vm.emoji_id for vm in state.emojis] == ["e2", "e1"]
        assert state.url_registry.get(state.get(first).url) == b"one-bytes"
        assert state.url_registry.get(state.get(second).url) == b"two-bytes"

    def test_failed_generation_removes_placeholder(self):
        state = GalleryState()
        pid = state.add_placeholder("one")
        state.discard_placeholder(pid)
        assert state.emojis == []

    def test_resolve_after_removal(self):
        state = GalleryState()
        pid = state.add_placeholder("one")
        state.remove(pid)
        assert state.resolve_placeholder(pid, b"late") is None
        assert len(state.url_registry) == 0


# ---------------------------------------------------------------------------
# Object URL lifecycle.
# ---------------------------------------------------------------------------


class TestObjectUrlLifecycle:
    def test_remove_releases_url(self):
        state = GalleryState()
        pid = state.add_placeholder("one")
        url = state.resolve_placeholder(pid, b"x").url
        state.remove(pid)
        assert url not in state.url_registry

    def test_refresh_releases_urls_and_keeps_placeholders(self):
        state = GalleryState()
        done = state.add_placeholder("done")
        url = state.resolve_placeholder(done, b"x", emoji_id="e1").url
        pending = state.add_placeholder("pending")

        state.replace_all([_payload("e1"), _payload("e0")])

        assert url not in state.url_registry
        assert [vm.id for vm in state.emojis] == [pending, "e1", "e0"]

    def test_close_releases_everything(self):
        state = GalleryState()
        for prompt in ("a", "b"):
            state.resolve_placeholder(state.add_placeholder(prompt), b"x")
        state.close()
        assert len(state.url_registry) == 0


# ---------------------------------------------------------------------------
# Optimistic likes.
# ---------------------------------------------------------------------------


class TestOptimisticLikes:
    @pytest.fixture
    def state(self) -> GalleryState:
        state = GalleryState()
        state.replace_all([_payload("e1", likes=5)])
        return state

    def test_begin_applies_immediately(self, state):
        state.begin_like("e1")
        vm = state.get("e1")
        assert vm.likes == 6
        assert vm.is_liked is True

    def test_confirm_uses_server_count(self, state):
        action = state.begin_like("e1")
        state.confirm_like(action, 9)
        assert state.get("e1").likes == 9
        assert state.get("e1").is_liked is True

    def test_roll_back_restores(self, state):
        action = state.begin_like("e1")
        state.roll_back_like(action)
        vm = state.get("e1")
        assert (vm.likes, vm.is_liked) == (5, False)
        assert action.status is LikeActionStatus.ROLLED_BACK

    def test_stale_failure_does_not_clobber_newer_action(self, state):
        """Only the latest action on a tile may roll it back."""
        first = state.begin_like("e1")   # like   -> 6, liked
        second = state.begin_like("e1")  # unlike -> 5, not liked

        state.roll_back_like(first)

        vm = state.get("e1")
        assert (vm.likes, vm.is_liked) == (5, False)

        state.confirm_like(second, 5)
        assert (vm.likes, vm.is_liked) == (5, False)

    def test_last_response_wins_for_count(self, state):
        first = state.begin_like("e1")
        second = state.begin_like("e1")

        state.confirm_like(second, 5)
        state.confirm_like(first, 6)

        vm = state.get("e1")
        assert vm.likes == 6
        assert vm.is_liked is False

    def test_unknown_tile(self, state):
        with pytest.raises(KeyError):
            state.begin_like("missing")
