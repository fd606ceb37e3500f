"""Unit tests for HistoryManager."""

import asyncio

import pytest

from photo_adjust.history import HistoryManager
from photo_adjust.models import AdjustmentParams, EncodedImage, HistoryEntry


def entry(tag: int) -> HistoryEntry:
    return HistoryEntry(
        image=EncodedImage(data=bytes([tag]), width=1, height=1),
        params=AdjustmentParams(brightness=tag),
    )


def tags(history: HistoryManager) -> list[int]:
    return [e.image.data[0] for e in history.entries]


class TestCommit:
    """Test committing entries."""

    def test_empty(self):
        """Test a new history has no current entry."""
        history = HistoryManager()
        assert len(history) == 0
        assert history.cursor == -1
        assert history.current is None
        assert not history.can_undo()
        assert not history.can_redo()

    def test_invalid_capacity(self):
        """Test capacity below one is rejected."""
        with pytest.raises(ValueError):
            HistoryManager(capacity=0)

    def test_commit_moves_cursor_to_tail(self):
        """Test the newest entry becomes current."""
        history = HistoryManager()
        history.commit(entry(1))
        history.commit(entry(2))

        assert history.cursor == 1
        assert history.current.image.data == b"\x02"
        assert history.can_undo()

    def test_capacity_evicts_oldest(self):
        """Test that committing beyond capacity drops the head."""
        history = HistoryManager(capacity=3)
        for tag in range(1, 6):
            history.commit(entry(tag))

        assert tags(history) == [3, 4, 5]
        assert history.cursor == 2

    def test_commit_after_undo_truncates_redo_tail(self):
        """Test that a new commit discards entries after the cursor."""
        history = HistoryManager()
        for tag in (1, 2, 3):
            history.commit(entry(tag))
        history.undo()
        history.undo()
        history.commit(entry(9))

        assert tags(history) == [1, 9]
        assert not history.can_redo()


class TestUndoRedo:
    """Test moving the cursor."""

    def test_undo_and_redo(self):
        """Test stepping back and forward returns the right entries."""
        history = HistoryManager()
        for tag in (1, 2, 3):
            history.commit(entry(tag))

        assert history.undo().image.data == b"\x02"
        assert history.undo().image.data == b"\x01"
        assert history.redo().image.data == b"\x02"

    def test_boundaries_return_none(self):
        """Test that undo at the head and redo at the tail are no-ops."""
        history = HistoryManager()
        history.commit(entry(1))

        assert history.undo() is None
        assert history.redo() is None
        assert history.cursor == 0

    def test_clear(self):
        """Test clear empties the history."""
        history = HistoryManager()
        history.commit(entry(1))
        history.clear()
        assert len(history) == 0
        assert history.current is None


class TestDebounce:
    """Test the debounced commit register."""

    def test_schedule_commit_commits_after_debounce(self):
        """Test a scheduled entry lands once the timer fires."""

        async def scenario():
            history = HistoryManager(debounce=0.01)
            history.schedule_commit(entry(1))
            assert len(history) == 0
            assert history.has_pending
            await asyncio.sleep(0.05)
            return history

        history = asyncio.run(scenario())
        assert tags(history) == [1]
        assert not history.has_pending

    def test_rapid_schedules_collapse_to_last(self):
        """Test that only the last of several quick changes is committed."""

        async def scenario():
            history = HistoryManager(debounce=0.05)
            for tag in (1, 2, 3):
                history.schedule_commit(entry(tag))
                await asyncio.sleep(0.005)
            await asyncio.sleep(0.1)
            return history

        assert tags(asyncio.run(scenario())) == [3]

    def test_commit_now_keeps_pending(self):
        """Test a discrete commit lands after a pending slider commit."""

        async def scenario():
            history = HistoryManager(debounce=10)
            history.schedule_commit(entry(1))
            history.commit_now(entry(2))
            return history

        history = asyncio.run(scenario())
        assert tags(history) == [1, 2]
        assert not history.has_pending

    def test_flush_commits_immediately(self):
        """Test flush commits the pending entry without waiting."""

        async def scenario():
            history = HistoryManager(debounce=10)
            history.schedule_commit(entry(4))
            history.flush()
            return history

        assert tags(asyncio.run(scenario())) == [4]

    def test_cancel_discards_pending(self):
        """Test cancel drops the pending entry."""

        async def scenario():
            history = HistoryManager(debounce=0.01)
            history.schedule_commit(entry(4))
            history.cancel()
            await asyncio.sleep(0.05)
            return history

        assert len(asyncio.run(scenario())) == 0

    def test_schedule_requires_running_loop(self):
        """Test that scheduling outside an event loop is an error."""
        with pytest.raises(RuntimeError):
            HistoryManager().schedule_commit(entry(1))
