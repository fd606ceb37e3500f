"""Bounded undo/redo history of rendered images with debounced commits."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from photo_adjust.logging_config import get_logger

if TYPE_CHECKING:
    import logging

    from photo_adjust.models import HistoryEntry


class HistoryManager:
    """Undo/redo stack of committed renders.

    Entries are appended at the tail and evicted from the head once the
    capacity is exceeded. Committing while the cursor is not at the tail
    discards every entry after the cursor.

    Slider-style changes go through :meth:`schedule_commit`, which keeps a
    single pending entry and commits it after ``debounce`` seconds without a
    newer one. Discrete actions use :meth:`commit_now`, which commits the
    pending entry ahead of their own so no rendered state is skipped.
    """

    def __init__(
        self,
        capacity: int = 10,
        debounce: float = 0.3,
        logger: logging.Logger | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.debounce = debounce
        self.logger = logger or get_logger(__name__)
        self._entries: list[HistoryEntry] = []
        self._cursor = -1
        self._pending: HistoryEntry | None = None
        self._timer: asyncio.TimerHandle | None = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        """Index of the current entry (-1 when empty)."""
        return self._cursor

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    @property
    def current(self) -> HistoryEntry | None:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def can_undo(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def commit(self, entry: HistoryEntry) -> None:
        """Append an entry at the cursor, truncating any redo tail."""
        del self._entries[self._cursor + 1 :]
        self._entries.append(entry)

        overflow = len(self._entries) - self.capacity
        if overflow > 0:
            del self._entries[:overflow]
            self.logger.debug(f"History full, evicted {overflow} oldest entries")

        self._cursor = len(self._entries) - 1

    def undo(self) -> HistoryEntry | None:
        """Step back one entry; None when already at the first entry."""
        if not self.can_undo():
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> HistoryEntry | None:
        """Step forward one entry; None when already at the last entry."""
        if not self.can_redo():
            return None
        self._cursor += 1
        return self._entries[self._cursor]

    def clear(self) -> None:
        self.cancel()
        self._entries.clear()
        self._cursor = -1

    # Debounce register ---------------------------------------------------

    def schedule_commit(self, entry: HistoryEntry) -> None:
        """Replace the pending entry and restart the debounce timer.

        Must be called from within a running event loop.
        """
        self._pending = entry
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce, self.flush)

    def commit_now(self, entry: HistoryEntry) -> None:
        """Commit any pending entry first, then this one immediately."""
        self.flush()
        self.commit(entry)

    def flush(self) -> None:
        """Commit the pending entry now, if there is one."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        entry, self._pending = self._pending, None
        if entry is not None:
            self.commit(entry)

    def cancel(self) -> None:
        """Discard the pending entry without committing it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
