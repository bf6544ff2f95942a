"""Derived view: the filtered, sorted list of active notes."""

from __future__ import annotations

from typing import Iterable, Union

from noteease.models import ALL_CATEGORIES, BuiltinCategory, Note


def _matches_category(note: Note, category: Union[BuiltinCategory, str]) -> bool:
    wanted = category.value if isinstance(category, BuiltinCategory) else category
    actual = (
        note.category.value
        if isinstance(note.category, BuiltinCategory)
        else note.category
    )
    return actual == wanted


def recompute_view(
    notes: Iterable[Note],
    active_category: Union[BuiltinCategory, str] = ALL_CATEGORIES,
    search_query: str = "",
) -> list[Note]:
    """Return the visible notes for the given selectors.

    Soft-deleted notes are dropped, then the category filter (exact,
    case-sensitive) and the search filter (case-insensitive substring of
    title or content) are applied. A whitespace-only query filters nothing;
    any other query is matched as typed, surrounding spaces included.
    Pinned notes come first; within each group the newest ``created_at``
    wins. ``sorted`` is stable, so equal timestamps keep their collection
    order.
    """
    visible = [note for note in notes if not note.is_deleted]

    if active_category != ALL_CATEGORIES:
        visible = [n for n in visible if _matches_category(n, active_category)]

    if search_query.strip():
        query = search_query.lower()
        visible = [
            n for n in visible
            if query in n.title.lower() or query in n.content.lower()
        ]

    # Two stable passes: newest first, then pinned first.
    visible.sort(key=lambda n: n.created_at, reverse=True)
    visible.sort(key=lambda n: not n.is_pinned)
    return visible


def trashed(notes: Iterable[Note]) -> list[Note]:
    """Soft-deleted notes, most recently updated first."""
    result = [note for note in notes if note.is_deleted]
    result.sort(key=lambda n: n.updated_at, reverse=True)
    return result
