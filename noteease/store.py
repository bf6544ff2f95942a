"""Note store: the single owner of the in-memory note collection.

Commands run synchronously against memory, refresh the derived view and
schedule a background write of the affected record. Only ``initialize()``,
``reset_app_data()`` and ``flush()`` wait on storage.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import UTC, datetime
from typing import Callable, Optional, Union

from noteease.categories import normalise_registry
from noteease.gateway import PersistenceGateway
from noteease.metrics import NOTES, STORAGE_LOAD_ERRORS, STORE_MUTATIONS
from noteease.models import (
    ALL_CATEGORIES,
    BuiltinCategory,
    LoadResult,
    Note,
    NoteDraft,
    NotePatch,
    StorageErrorNotice,
    StoreStatus,
    as_utc,
    coerce_category,
    is_custom,
)
from noteease.view import recompute_view, trashed
from noteease.writer import RecordWriter, WriteMode

logger = logging.getLogger(__name__)

CRITICAL_ERROR_MESSAGE = (
    "A critical error occurred. All app data has been reset to recover "
    "functionality."
)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    digits = []
    while True:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
        if number == 0:
            return "".join(reversed(digits))


def generate_id() -> str:
    """Millisecond timestamp plus 8 random characters, both base-36."""
    stamp = _base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"note_{stamp}{suffix}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class NoteStore:
    """Authoritative note collection, category registry, theme and view."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = generate_id,
        write_mode: WriteMode = "coalesce",
    ) -> None:
        self._gateway = gateway
        self._clock = clock
        self._new_id = id_factory

        self._status = StoreStatus.UNINITIALIZED
        self._init_lock = asyncio.Lock()
        self._storage_error: Optional[StorageErrorNotice] = None

        self._notes: list[Note] = []
        self._filtered: list[Note] = []
        self._custom_categories: list[str] = []
        self._is_dark_mode = False
        self._active_category: Union[BuiltinCategory, str] = ALL_CATEGORIES
        self._search_query = ""
        self._initial_note_category: Union[BuiltinCategory, str, None] = None

        self._notes_writer = RecordWriter("notes", gateway.save_notes, write_mode)
        self._theme_writer = RecordWriter("theme", gateway.save_theme, write_mode)
        self._categories_writer = RecordWriter(
            "categories", gateway.save_categories, write_mode
        )

    # ------------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------------

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def is_initialized(self) -> bool:
        return self._status is StoreStatus.READY

    @property
    def notes(self) -> list[Note]:
        """Whole collection, trashed notes included, newest additions first."""
        return list(self._notes)

    @property
    def filtered_notes(self) -> list[Note]:
        return list(self._filtered)

    @property
    def trashed_notes(self) -> list[Note]:
        return trashed(self._notes)

    @property
    def trash_count(self) -> int:
        return sum(1 for note in self._notes if note.is_deleted)

    @property
    def active_category(self) -> Union[BuiltinCategory, str]:
        return self._active_category

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def is_dark_mode(self) -> bool:
        return self._is_dark_mode

    @property
    def custom_categories(self) -> list[str]:
        return list(self._custom_categories)

    @property
    def initial_note_category(self) -> Union[BuiltinCategory, str, None]:
        return self._initial_note_category

    @property
    def storage_error(self) -> Optional[StorageErrorNotice]:
        return self._storage_error

    def consume_storage_error(self) -> Optional[StorageErrorNotice]:
        """Return the pending storage error once, then forget it."""
        notice, self._storage_error = self._storage_error, None
        return notice

    def get_note(self, note_id: str) -> Optional[Note]:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> LoadResult:
        """Load persisted state. Always leaves the store ready.

        A second call on a ready store returns the current state without
        touching storage. On any load failure storage is wiped, the store
        starts empty and a storage error is left pending for the UI.
        """
        async with self._init_lock:
            if self._status is StoreStatus.READY:
                logger.debug("Store already initialized")
                return self._snapshot()

            self._status = StoreStatus.INITIALIZING
            try:
                result = await self._gateway.load()
                if result.storage_error:
                    logger.warning("Storage error detected, resetting app data")
                    await self._gateway.clear()
                    return self._recover(
                        result.error_message or CRITICAL_ERROR_MESSAGE
                    )

                self._notes = list(result.notes)
                self._is_dark_mode = result.is_dark_mode
                self._custom_categories = normalise_registry(result.custom_categories)
                self._status = StoreStatus.READY
                self._refresh()
                logger.info("Store initialized with %d notes", len(self._notes))
                return result
            except Exception as e:
                logger.error("Critical error loading data: %s", e)
                STORAGE_LOAD_ERRORS.labels(kind="critical").inc()
                try:
                    await self._gateway.clear()
                except Exception as clear_error:
                    logger.error("Storage clear after critical error failed: %s", clear_error)
                return self._recover(CRITICAL_ERROR_MESSAGE)

    async def reset_app_data(self) -> bool:
        """Wipe storage and return to an empty, ready store.

        Queued writes are dropped and in-flight ones awaited first so a stale
        snapshot cannot land after the wipe.
        """
        for writer in self._writers:
            writer.reset()
        await self.flush()
        try:
            ok = await self._gateway.clear()
        except Exception as e:
            logger.error("Error in reset_app_data: %s", e)
            return False
        if not ok:
            logger.error("Storage clear failed, app data not reset")
            return False

        self._clear_state()
        self._active_category = ALL_CATEGORIES
        self._search_query = ""
        self._initial_note_category = None
        self._storage_error = None
        self._status = StoreStatus.READY
        self._refresh()
        STORE_MUTATIONS.labels(operation="reset").inc()
        logger.info("App data reset")
        return True

    async def flush(self) -> None:
        """Wait for every scheduled storage write to finish."""
        await asyncio.gather(*(writer.flush() for writer in self._writers))

    # ------------------------------------------------------------------
    # Note commands
    # ------------------------------------------------------------------

    def add_note(self, draft: Union[NoteDraft, dict]) -> Note:
        """Create a note from ``draft`` and put it at the front of the collection."""
        draft = NoteDraft.model_validate(draft)
        now = self._clock()
        note = Note(
            id=self._unique_id(),
            created_at=now,
            updated_at=now,
            **draft.model_dump(),
        )
        logger.info("Adding note %s '%s'", note.id, note.title)
        self._register_category(note.category)
        self._commit([note, *self._notes], "add")
        return note

    def update_note(self, note_id: str, patch: Union[NotePatch, dict]) -> list[Note]:
        """Merge ``patch`` into a note and bump ``updated_at``."""
        patch = NotePatch.model_validate(patch)
        index = self._index(note_id)
        if index is None:
            logger.warning("Note not found for update: %s", note_id)
            return self.filtered_notes

        note = self._notes[index]
        changes = patch.changes()
        changes["updated_at"] = max(as_utc(self._clock()), note.created_at)
        updated = note.model_copy(update=changes)
        logger.info("Updating note %s (%s)", note_id, ", ".join(sorted(changes)))
        if "category" in changes:
            self._register_category(updated.category)

        notes = list(self._notes)
        notes[index] = updated
        return self._commit(notes, "update")

    def delete_note(self, note_id: str) -> list[Note]:
        """Move a note to the trash."""
        return self._set_flag(note_id, "is_deleted", True, "delete")

    def restore_note(self, note_id: str) -> list[Note]:
        return self._set_flag(note_id, "is_deleted", False, "restore")

    def pin_note(self, note_id: str) -> list[Note]:
        return self._set_flag(note_id, "is_pinned", True, "pin")

    def unpin_note(self, note_id: str) -> list[Note]:
        return self._set_flag(note_id, "is_pinned", False, "unpin")

    def permanently_delete_note(self, note_id: str) -> list[Note]:
        """Remove a note from the collection for good."""
        if self._index(note_id) is None:
            logger.warning("Note not found for permanent deletion: %s", note_id)
            return self.filtered_notes
        logger.info("Permanently deleting note %s", note_id)
        notes = [note for note in self._notes if note.id != note_id]
        return self._commit(notes, "permanent_delete")

    def empty_trash(self) -> int:
        """Permanently delete every trashed note. Returns how many went."""
        remaining = [note for note in self._notes if not note.is_deleted]
        removed = len(self._notes) - len(remaining)
        if removed:
            logger.info("Emptying trash: %d notes", removed)
            self._commit(remaining, "empty_trash")
        return removed

    # ------------------------------------------------------------------
    # Categories, theme and view selectors
    # ------------------------------------------------------------------

    def add_custom_category(self, name: str) -> bool:
        """Register a custom category. Returns True if it was new."""
        if not name.strip():
            return False
        if not is_custom(name):
            logger.debug("Ignoring reserved category name: %s", name)
            return False
        if name in self._custom_categories:
            return False
        self._custom_categories = [*self._custom_categories, name]
        self._categories_writer.schedule(list(self._custom_categories))
        STORE_MUTATIONS.labels(operation="add_category").inc()
        logger.info("Custom category added: %s", name)
        return True

    def remove_custom_category(self, name: str) -> bool:
        """Unregister a custom category. Notes tagged with it keep the tag."""
        if name not in self._custom_categories:
            logger.debug("Custom category not registered: %s", name)
            return False
        self._custom_categories = [c for c in self._custom_categories if c != name]
        self._categories_writer.schedule(list(self._custom_categories))
        STORE_MUTATIONS.labels(operation="remove_category").inc()
        logger.info("Custom category removed: %s", name)
        return True

    def toggle_theme(self) -> bool:
        """Flip dark mode and return the new value."""
        self._is_dark_mode = not self._is_dark_mode
        self._theme_writer.schedule(self._is_dark_mode)
        STORE_MUTATIONS.labels(operation="toggle_theme").inc()
        return self._is_dark_mode

    def set_active_category(self, category: Union[BuiltinCategory, str]) -> list[Note]:
        self._active_category = category
        self._refresh()
        return self.filtered_notes

    def set_search_query(self, query: str) -> list[Note]:
        self._search_query = query
        self._refresh()
        return self.filtered_notes

    def set_initial_note_category(
        self, category: Union[BuiltinCategory, str, None]
    ) -> None:
        """Remember the category the editor should preselect for a new note."""
        if category is None or category == ALL_CATEGORIES:
            self._initial_note_category = None
        else:
            self._initial_note_category = coerce_category(category)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _writers(self) -> tuple[RecordWriter, ...]:
        return (self._notes_writer, self._theme_writer, self._categories_writer)

    def _index(self, note_id: str) -> Optional[int]:
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                return i
        return None

    def _unique_id(self) -> str:
        taken = {note.id for note in self._notes}
        note_id = self._new_id()
        while note_id in taken:
            note_id = self._new_id()
        return note_id

    def _register_category(self, category: Union[BuiltinCategory, str]) -> None:
        if is_custom(category) and category not in self._custom_categories:
            self.add_custom_category(category)

    def _set_flag(
        self, note_id: str, field: str, value: bool, operation: str
    ) -> list[Note]:
        index = self._index(note_id)
        if index is None:
            logger.warning("Note not found for %s: %s", operation, note_id)
            return self.filtered_notes
        logger.info("Note %s: %s", operation, note_id)
        notes = list(self._notes)
        notes[index] = notes[index].model_copy(update={field: value})
        return self._commit(notes, operation)

    def _commit(self, notes: list[Note], operation: str) -> list[Note]:
        self._notes = notes
        self._refresh()
        self._notes_writer.schedule(notes)
        STORE_MUTATIONS.labels(operation=operation).inc()
        return self.filtered_notes

    def _refresh(self) -> None:
        self._filtered = recompute_view(
            self._notes, self._active_category, self._search_query
        )
        trash = self.trash_count
        NOTES.labels(state="active").set(len(self._notes) - trash)
        NOTES.labels(state="trashed").set(trash)

    def _clear_state(self) -> None:
        self._notes = []
        self._custom_categories = []
        self._is_dark_mode = False

    def _recover(self, message: str) -> LoadResult:
        self._clear_state()
        self._storage_error = StorageErrorNotice(message=message)
        self._status = StoreStatus.READY
        self._refresh()
        return LoadResult(storage_error=True, error_message=message)

    def _snapshot(self) -> LoadResult:
        return LoadResult(
            notes=list(self._notes),
            is_dark_mode=self._is_dark_mode,
            custom_categories=list(self._custom_categories),
        )
