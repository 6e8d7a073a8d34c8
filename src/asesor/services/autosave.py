"""Debounced auto-save of the document being edited."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

SaveCallback = Callable[[str], Awaitable[object]]


class AutoSaveSession:
    """Tracks whether the editor holds changes that are not persisted yet."""

    def __init__(self) -> None:
        self._content: str | None = None
        self._dirty = False
        self._saves = 0
        self._last_saved_at: datetime | None = None

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    @property
    def content(self) -> str | None:
        return self._content

    @property
    def save_count(self) -> int:
        return self._saves

    @property
    def last_saved_at(self) -> datetime | None:
        return self._last_saved_at

    def mark_dirty(self, content: str) -> None:
        self._content = content
        self._dirty = True

    def mark_saved(self, content: str) -> None:
        # a newer edit may have arrived while the save was in flight
        if self._content == content:
            self._dirty = False
        self._saves += 1
        self._last_saved_at = datetime.utcnow()


class AutoSaver:
    """Saves after ``delay`` seconds without edits, and every ``interval``
    seconds while changes remain unsaved.

    Saves are not serialized: a debounce firing while an earlier save is
    still running starts a second save.
    """

    def __init__(
        self,
        save: SaveCallback,
        session: AutoSaveSession | None = None,
        *,
        delay: float = 3.0,
        interval: float = 30.0,
    ) -> None:
        self._save = save
        self.session = session or AutoSaveSession()
        self._delay = delay
        self._interval = interval
        self._pending: asyncio.Task | None = None
        self._backstop: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()

    def start(self) -> None:
        if self._backstop is None or self._backstop.done():
            self._backstop = asyncio.create_task(self._force_save_loop())

    async def stop(self) -> None:
        """Cancel timers and write whatever is still unsaved."""
        for task in (self._pending, self._backstop):
            if task is not None and not task.done():
                task.cancel()
        self._pending = None
        self._backstop = None
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        await self.flush()

    def notify_edit(self, content: str) -> None:
        """Record an edit and restart the quiet-period timer."""
        self.session.mark_dirty(content)
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._debounced_save())

    async def flush(self) -> bool:
        """Save immediately if there are unsaved changes."""
        if not self.session.has_unsaved_changes or self.session.content is None:
            return False
        content = self.session.content
        await self._save(content)
        self.session.mark_saved(content)
        logger.debug("autosave.flush", saves=self.session.save_count)
        return True

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self._delay)
        task = asyncio.create_task(self._guarded_flush("debounce"))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _force_save_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self.session.has_unsaved_changes:
                await self._guarded_flush("interval")

    async def _guarded_flush(self, trigger: str) -> None:
        try:
            await self.flush()
        except Exception as exc:
            # timers keep running; the next edit or interval retries
            logger.error("autosave.failed", trigger=trigger, error=str(exc))
