"""Unit tests for noteease.models and noteease.categories."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from noteease.categories import (
    DARK_TAG_COLORS,
    LIGHT_TAG_COLORS,
    available_categories,
    category_label,
    normalise_registry,
    tag_color,
)
from noteease.models import (
    BuiltinCategory,
    Note,
    NoteDraft,
    NotePatch,
    coerce_category,
    is_custom,
)

T0 = datetime(2026, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Category values
# ---------------------------------------------------------------------------


class TestCategoryValues:
    def test_builtin_names_become_enum(self) -> None:
        assert coerce_category("work") is BuiltinCategory.WORK

    def test_custom_name_kept_verbatim(self) -> None:
        assert coerce_category("Travel") == "Travel"
        assert not isinstance(coerce_category("Travel"), BuiltinCategory)

    def test_builtin_match_is_case_sensitive(self) -> None:
        assert coerce_category("Work") == "Work"
        assert is_custom("Work")

    def test_all_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            coerce_category("all")

    def test_blank_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            coerce_category("   ")

    def test_is_custom(self) -> None:
        assert is_custom("travel")
        assert not is_custom("personal")
        assert not is_custom(BuiltinCategory.FAMILY)
        assert not is_custom("all")


# ---------------------------------------------------------------------------
# Note / draft / patch
# ---------------------------------------------------------------------------


class TestNoteModel:
    def test_defaults(self) -> None:
        note = Note(id="n1", created_at=T0, updated_at=T0)
        assert note.title == ""
        assert note.category is BuiltinCategory.PERSONAL
        assert note.is_pinned is False
        assert note.is_deleted is False

    def test_accepts_camel_case_record(self) -> None:
        note = Note.model_validate(
            {
                "id": "note_abc",
                "title": "T",
                "content": "<p>c</p>",
                "category": "travel",
                "isPinned": True,
                "isDeleted": False,
                "createdAt": "2024-03-01T10:00:00.000Z",
                "updatedAt": "2024-03-02T10:00:00.000Z",
            }
        )
        assert note.is_pinned is True
        assert note.category == "travel"
        assert note.created_at == datetime(2024, 3, 1, 10, tzinfo=UTC)

    def test_dumps_camel_case(self) -> None:
        note = Note(id="n1", category="work", created_at=T0, updated_at=T0)
        data = note.model_dump(mode="json", by_alias=True)
        assert data["category"] == "work"
        assert "isPinned" in data
        assert "createdAt" in data

    def test_frozen(self) -> None:
        note = Note(id="n1", created_at=T0, updated_at=T0)
        with pytest.raises(ValidationError):
            note.title = "changed"

    def test_stored_all_category_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Note(id="n1", category="all", created_at=T0, updated_at=T0)

    def test_updated_at_never_before_created_at(self) -> None:
        note = Note(id="n1", created_at=T0, updated_at=T0 - timedelta(days=1))
        assert note.updated_at == T0

    def test_naive_timestamps_read_as_utc(self) -> None:
        note = Note.model_validate(
            {"id": "n1", "createdAt": "2026-01-01T00:00:00", "updatedAt": "2026-01-01T00:00:00"}
        )
        assert note.created_at == T0
        assert note.created_at.tzinfo is not None
        assert note.updated_at.tzinfo is not None

    def test_offset_timestamps_converted_to_utc(self) -> None:
        note = Note.model_validate(
            {
                "id": "n1",
                "createdAt": "2026-01-01T02:00:00+02:00",
                "updatedAt": "2025-12-31T23:00:00",
            }
        )
        assert note.created_at == T0
        assert note.created_at.utcoffset() == timedelta(0)
        # Mixed naive and aware input is still clamped.
        assert note.updated_at == T0


class TestDraftAndPatch:
    def test_draft_rejects_all(self) -> None:
        with pytest.raises(ValidationError):
            NoteDraft(title="x", category="all")

    def test_patch_changes_only_set_fields(self) -> None:
        patch = NotePatch(title="New")
        assert patch.changes() == {"title": "New"}

    def test_patch_ignores_explicit_none(self) -> None:
        patch = NotePatch.model_validate({"title": None, "isPinned": True})
        assert patch.changes() == {"is_pinned": True}

    def test_patch_category_coerced(self) -> None:
        patch = NotePatch(category="family")
        assert patch.changes()["category"] is BuiltinCategory.FAMILY


# ---------------------------------------------------------------------------
# Labels, colors, registry
# ---------------------------------------------------------------------------


class TestCategoryHelpers:
    def test_label(self) -> None:
        assert category_label("work") == "Work"
        assert category_label(BuiltinCategory.FAMILY) == "Family"
        assert category_label("road trip") == "Road trip"
        assert category_label("") == ""

    def test_builtin_palette(self) -> None:
        assert tag_color("work") == LIGHT_TAG_COLORS["work"]
        assert tag_color(BuiltinCategory.WORK, dark=True) == DARK_TAG_COLORS["work"]
        assert tag_color("all") == "#3B51F0"

    def test_custom_color_is_stable_hex(self) -> None:
        color = tag_color("travel")
        assert re.fullmatch(r"#[0-9a-f]{6}", color)
        assert tag_color("travel") == color
        assert tag_color("travel", dark=True) == color

    def test_single_char_color(self) -> None:
        # hash("a") == 97 -> low byte 0x61, higher bytes zero
        assert tag_color("a") == "#610000"

    def test_different_names_differ(self) -> None:
        assert tag_color("travel") != tag_color("recipes")

    def test_long_and_non_ascii_names(self) -> None:
        assert re.fullmatch(r"#[0-9a-f]{6}", tag_color("x" * 500))
        assert re.fullmatch(r"#[0-9a-f]{6}", tag_color("voyage \U0001f30d"))

    def test_available_categories(self) -> None:
        result = available_categories(["travel", "work", "recipes"])
        assert result == [
            BuiltinCategory.PERSONAL,
            BuiltinCategory.WORK,
            BuiltinCategory.FAMILY,
            "travel",
            "recipes",
        ]

    def test_normalise_registry(self) -> None:
        assert normalise_registry(["a", "b", "a", "", " ", "all", "work", "c"]) == [
            "a",
            "b",
            "c",
        ]
