"""Gallery listing helpers for the Emoji Maker API.

This module keeps the filtering and pagination logic of the gallery endpoints
out of ``emojimaker.api.main`` so route handlers can focus on HTTP concerns.

Records arrive from storage newest first; every helper preserves that order.
"""

from __future__ import annotations

from emojimaker.core.records import EmojiRecord

MAX_PER_PAGE = 100


def filter_emojis(
    records: list[EmojiRecord],
    *,
    liked_ids: set[str],
    liked_only: bool = False,
) -> list[EmojiRecord]:
    """Apply the "liked by me" filter.

    Args:
        records: Source records, newest first.
        liked_ids: Ids the caller currently likes.
        liked_only: Keep only records in ``liked_ids``.

    Returns:
        Filtered records in their original order.
    """
    if liked_only:
        return [record for record in records if record.id in liked_ids]
    return records


def paginate_entries(entries: list, page: int, per_page: int) -> dict:
    """Paginate entries and clamp the requested page to valid bounds.

    Clamping keeps a client that asks for a page past the end (for example
    after its filter shrank the result set) on the last real page instead of
    an empty one.

    Args:
        entries: Filtered entries.
        page: Requested one-based page number.
        per_page: Requested items per page, clamped to ``1..MAX_PER_PAGE``.

    Returns:
        Dictionary containing ``total``, ``page``, ``per_page``, ``pages``,
        and ``items`` for the resolved page.
    """
    per_page = min(max(per_page, 1), MAX_PER_PAGE)
    total = len(entries)
    pages = (total + per_page - 1) // per_page if total > 0 else 1
    resolved_page = min(max(page, 1), pages)

    start = (resolved_page - 1) * per_page
    end = start + per_page

    return {
        "total": total,
        "page": resolved_page,
        "per_page": per_page,
        "pages": pages,
        "items": entries[start:end],
    }
