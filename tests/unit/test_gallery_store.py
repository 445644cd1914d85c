"""Tests for emojimaker.api.gallery_store — filtering and pagination."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from emojimaker.api.gallery_store import MAX_PER_PAGE, filter_emojis, paginate_entries
from emojimaker.core.records import EmojiRecord


def _records(n: int) -> list[EmojiRecord]:
    return [
        EmojiRecord(
            id=f"e{i}",
            image_url=f"/static/emojis/e{i}.png",
            prompt=f"prompt {i}",
            creator_user_id="u1",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        for i in range(n)
    ]


class TestFilterEmojis:
    def test_no_filter_returns_all(self):
        records = _records(3)
        assert filter_emojis(records, liked_ids={"e1"}) == records

    def test_liked_only_keeps_order(self):
        records = _records(5)
        result = filter_emojis(records, liked_ids={"e3", "e1"}, liked_only=True)
        assert [r.id for r in result] == ["e1", "e3"]


class TestPaginateEntries:
    def test_first_page(self):
        result = paginate_entries(list(range(45)), page=1, per_page=20)
        assert result["total"] == 45
        assert result["pages"] == 3
        assert result["items"] == list(range(20))

    def test_last_partial_page(self):
        result = paginate_entries(list(range(45)), page=3, per_page=20)
        assert result["items"] == list(range(40, 45))

    def test_page_past_end_clamped(self):
        result = paginate_entries(list(range(45)), page=9, per_page=20)
        assert result["page"] == 3

    @pytest.mark.parametrize("page", [0, -4])
    def test_page_below_one_clamped(self, page):
        assert paginate_entries(list(range(5)), page=page, per_page=2)["page"] == 1

    def test_per_page_clamped(self):
        assert paginate_entries([], page=1, per_page=0)["per_page"] == 1
        assert paginate_entries([], page=1, per_page=10_000)["per_page"] == MAX_PER_PAGE

    def test_empty(self):
        result = paginate_entries([], page=1, per_page=20)
        assert result == {"total": 0, "page": 1, "per_page": 20, "pages": 1, "items": []}
