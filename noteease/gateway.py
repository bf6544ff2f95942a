"""Persistence gateway: the three NoteEase records on a key-value store.

Notes, the dark-mode flag and the custom-category list are stored as
independent JSON strings under fixed keys. Nothing here raises past its own
boundary; failures come back as ``False`` or as ``LoadResult`` error fields.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import TypeAdapter

from noteease.categories import normalise_registry
from noteease.config import CATEGORIES_KEY, NOTES_KEY, THEME_KEY
from noteease.kv import KeyValueStore, RecordTooLargeError
from noteease.metrics import STORAGE_LOAD_ERRORS, STORAGE_WRITES
from noteease.models import ALL_CATEGORIES, BuiltinCategory, LoadResult, Note

logger = logging.getLogger(__name__)

TOO_LARGE_MESSAGE = (
    "Your notes data exceeded the storage limit. The app has been reset. "
    "Please avoid storing very large images directly in notes."
)
LOAD_FAILED_MESSAGE = (
    "There was an error loading your notes. The app data has been reset."
)

# Error text emitted by mobile SQLite-backed stores when a row overflows.
TOO_LARGE_SIGNATURES = ("Row too big", "CursorWindow")

_NOTES = TypeAdapter(list[Note])
_RAW_NOTES = TypeAdapter(list[dict[str, Any]])
_THEME = TypeAdapter(bool)
_CATEGORIES = TypeAdapter(list[str])


def is_too_large(exc: BaseException) -> bool:
    """Whether an exception means a record outgrew the storage engine."""
    if isinstance(exc, RecordTooLargeError):
        return True
    message = str(exc)
    return any(sig in message for sig in TOO_LARGE_SIGNATURES)


def _repair_category(record: dict[str, Any]) -> dict[str, Any]:
    if "category" not in record:
        return record
    category = record["category"]
    if category is None or (
        isinstance(category, str)
        and (not category.strip() or category == ALL_CATEGORIES)
    ):
        logger.warning(
            "Note %s has unusable category %r, filing it under personal",
            record.get("id"),
            category,
        )
        return {**record, "category": BuiltinCategory.PERSONAL.value}
    return record


def _parse_notes(raw: str) -> list[Note]:
    """Parse the notes record, refiling notes whose category is blank or ``all``.

    Malformed JSON and records of the wrong shape still raise.
    """
    records = _RAW_NOTES.validate_json(raw)
    return _NOTES.validate_python([_repair_category(r) for r in records])


class PersistenceGateway:
    """Reads and writes the notes, theme and categories records."""

    def __init__(
        self,
        store: KeyValueStore,
        notes_key: str = NOTES_KEY,
        theme_key: str = THEME_KEY,
        categories_key: str = CATEGORIES_KEY,
    ) -> None:
        self._store = store
        self.notes_key = notes_key
        self.theme_key = theme_key
        self.categories_key = categories_key

    @property
    def keys(self) -> tuple[str, str, str]:
        return (self.notes_key, self.theme_key, self.categories_key)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> LoadResult:
        """Read all three records, substituting defaults for absent ones."""
        try:
            logger.info("Loading data from storage...")
            notes_raw = await self._store.get(self.notes_key)
            theme_raw = await self._store.get(self.theme_key)
            categories_raw = await self._store.get(self.categories_key)

            notes = _parse_notes(notes_raw) if notes_raw else []
            is_dark_mode = _THEME.validate_json(theme_raw) if theme_raw else False
            categories = (
                normalise_registry(_CATEGORIES.validate_json(categories_raw))
                if categories_raw
                else []
            )
        except Exception as exc:
            if is_too_large(exc):
                logger.warning("Storage size limit reached, resetting app data: %s", exc)
                STORAGE_LOAD_ERRORS.labels(kind="too_large").inc()
                await self.clear()
                return LoadResult(storage_error=True, error_message=TOO_LARGE_MESSAGE)

            logger.error("Error loading data from storage: %s", exc)
            STORAGE_LOAD_ERRORS.labels(kind="generic").inc()
            return LoadResult(storage_error=True, error_message=LOAD_FAILED_MESSAGE)

        logger.info(
            "Loaded %d notes, %d custom categories (dark_mode=%s)",
            len(notes),
            len(categories),
            is_dark_mode,
        )
        return LoadResult(
            notes=notes,
            is_dark_mode=is_dark_mode,
            custom_categories=categories,
        )

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def _write(self, record: str, key: str, payload: str) -> bool:
        try:
            ok = await self._store.set(key, payload)
        except Exception as e:
            logger.error("Error saving %s to storage: %s", record, e)
            ok = False
        else:
            if not ok:
                logger.error("Storage rejected write of %s", record)
        STORAGE_WRITES.labels(record=record, status="success" if ok else "failure").inc()
        return ok

    async def save_notes(self, notes: list[Note]) -> bool:
        """Serialise and write the whole note collection."""
        logger.debug("Saving %d notes", len(notes))
        try:
            payload = _NOTES.dump_json(list(notes), by_alias=True).decode("utf-8")
        except Exception as e:
            logger.error("Could not serialise notes: %s", e)
            STORAGE_WRITES.labels(record="notes", status="failure").inc()
            return False
        return await self._write("notes", self.notes_key, payload)

    async def save_theme(self, is_dark_mode: bool) -> bool:
        payload = _THEME.dump_json(bool(is_dark_mode)).decode("utf-8")
        return await self._write("theme", self.theme_key, payload)

    async def save_categories(self, categories: list[str]) -> bool:
        payload = _CATEGORIES.dump_json(list(categories)).decode("utf-8")
        return await self._write("categories", self.categories_key, payload)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def clear(self) -> bool:
        """Erase every record for recovery. Returns False only on total failure."""
        logger.warning("Clearing all app storage")
        try:
            for key in self.keys:
                await self._store.remove(key)
            await self._store.clear()

            if await self._store.get(self.notes_key) is not None:
                logger.warning("Full clear left the notes record behind")
                await self._store.remove(self.notes_key)
            else:
                logger.info("Storage cleared completely")
            return True
        except Exception as e:
            logger.error("Failed to clear storage: %s", e)

        # Last resort: drop just the notes record, the one that can overflow.
        try:
            await self._store.remove(self.notes_key)
            logger.info("Cleared notes record as last resort")
            return True
        except Exception as e:
            logger.error("Complete failure to clear storage: %s", e)
            return False
