"""Background persistence writes scheduled by the note store.

Mutations never wait for storage. Each record gets a ``RecordWriter`` that
starts the write on the running event loop and keeps track of it so the
store can ``flush()`` at shutdown.

Two modes:

* ``coalesce`` - at most one write in flight per record. A snapshot
  scheduled meanwhile waits in a single slot; a newer one replaces it, so
  the last scheduled snapshot is always the last one written.
* ``fire_and_forget`` - every snapshot gets its own task and concurrent
  writes race, last finisher wins.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Literal, Optional

from noteease.metrics import STORAGE_WRITES

logger = logging.getLogger(__name__)

WriteMode = Literal["coalesce", "fire_and_forget"]

_EMPTY = object()


class RecordWriter:
    """Schedules writes of one record without blocking the caller."""

    def __init__(
        self,
        record: str,
        write: Callable[[Any], Awaitable[bool]],
        mode: WriteMode = "coalesce",
    ) -> None:
        self._record = record
        self._write = write
        self._mode = mode
        self._tasks: set[asyncio.Task] = set()
        self._pending: Any = _EMPTY
        self._drainer: Optional[asyncio.Task] = None

    @property
    def record(self) -> str:
        return self._record

    @property
    def in_flight(self) -> int:
        """Number of write tasks not yet finished."""
        return len(self._tasks)

    def schedule(self, snapshot: Any) -> bool:
        """Queue ``snapshot`` for writing. Returns False if it was dropped."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("No running event loop, dropping %s write", self._record)
            STORAGE_WRITES.labels(record=self._record, status="dropped").inc()
            return False

        if self._mode == "fire_and_forget":
            self._track(loop.create_task(self._run(snapshot)))
            return True

        if self._pending is not _EMPTY:
            logger.debug("Superseding queued %s write", self._record)
        self._pending = snapshot
        if self._drainer is None or self._drainer.done():
            self._drainer = loop.create_task(self._drain())
            self._track(self._drainer)
        return True

    async def flush(self) -> None:
        """Wait until every scheduled write has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def reset(self) -> None:
        """Forget a queued snapshot that has not started yet."""
        self._pending = _EMPTY

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _drain(self) -> None:
        while self._pending is not _EMPTY:
            snapshot, self._pending = self._pending, _EMPTY
            await self._run(snapshot)

    async def _run(self, snapshot: Any) -> bool:
        try:
            ok = await self._write(snapshot)
        except Exception as e:
            logger.error("Unexpected error writing %s: %s", self._record, e)
            ok = False
        if not ok:
            logger.error("Failed to save %s, in-memory state kept", self._record)
        return ok
