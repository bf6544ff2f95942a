"""Pydantic models for notes, categories and storage results."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

ALL_CATEGORIES = "all"


class BuiltinCategory(str, Enum):
    """The three categories every installation ships with."""

    PERSONAL = "personal"
    WORK = "work"
    FAMILY = "family"


def coerce_category(value: Union[BuiltinCategory, str]) -> Union[BuiltinCategory, str]:
    """Normalise a note category to a builtin member or a custom name.

    ``all`` is a filter selector and is rejected here so it can never be
    stored on a note.
    """
    if isinstance(value, BuiltinCategory):
        return value
    if value == ALL_CATEGORIES:
        raise ValueError("'all' is a filter selector, not a note category")
    if not value.strip():
        raise ValueError("category must not be blank")
    try:
        return BuiltinCategory(value)
    except ValueError:
        return value


Category = Annotated[Union[BuiltinCategory, str], AfterValidator(coerce_category)]


def as_utc(value: datetime) -> datetime:
    """Timezone-aware UTC copy of ``value``. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_custom(category: Union[BuiltinCategory, str]) -> bool:
    """True for any category that is neither builtin nor the ``all`` selector."""
    if isinstance(category, BuiltinCategory) or category == ALL_CATEGORIES:
        return False
    return category not in {c.value for c in BuiltinCategory}


class _CamelModel(BaseModel):
    """Stored records use camelCase keys (``isPinned``, ``createdAt``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Note(_CamelModel):
    """A single user note. Instances are immutable; the store swaps them."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str = ""
    content: str = Field("", description="Rich-text markup, may inline images")
    category: Category = BuiltinCategory.PERSONAL
    is_pinned: bool = False
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at")
    @classmethod
    def _created_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("updated_at")
    @classmethod
    def _not_before_created(cls, value: datetime, info: ValidationInfo) -> datetime:
        value = as_utc(value)
        created = info.data.get("created_at")
        if created is None:
            return value
        return max(value, created)


class NoteDraft(_CamelModel):
    """Fields supplied by the editor when creating a note."""

    title: str = ""
    content: str = ""
    category: Category = BuiltinCategory.PERSONAL
    is_pinned: bool = False
    is_deleted: bool = False


class NotePatch(_CamelModel):
    """Partial update; only explicitly set fields are applied."""

    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[Category] = None
    is_pinned: Optional[bool] = None
    is_deleted: Optional[bool] = None

    def changes(self) -> dict:
        """Fields the caller actually set, minus explicit ``None`` values."""
        return {
            k: v
            for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None
        }


class StoreStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class LoadResult(BaseModel):
    """Outcome of reading all three records, also returned by initialize()."""

    notes: list[Note] = Field(default_factory=list)
    is_dark_mode: bool = False
    custom_categories: list[str] = Field(default_factory=list)
    storage_error: bool = False
    error_message: Optional[str] = None


class StorageErrorNotice(BaseModel):
    """Pending storage error the UI shows once after startup."""

    message: str
