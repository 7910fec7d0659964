"""Unit tests for DebouncedSaver"""
import asyncio
import pytest
from unittest.mock import AsyncMock
from services.caption_saver import DebouncedSaver


@pytest.fixture
def saver_fn():
    return AsyncMock()


class TestDebouncedSaver:
    """Test cases for DebouncedSaver"""

    @pytest.mark.asyncio
    async def test_burst_coalesced(self, saver_fn):
        """Rapid edits to one caption produce a single save of the latest text"""
        saver = DebouncedSaver(20, saver_fn)

        for text in ("a", "ab", "abc"):
            saver.schedule_save("caption.txt", text)
        await asyncio.sleep(0.08)

        saver_fn.assert_awaited_once_with("caption.txt", "abc")
        assert saver.pending_keys == []

    @pytest.mark.asyncio
    async def test_keys_independent(self, saver_fn):
        """Saves for different captions do not cancel each other"""
        saver = DebouncedSaver(20, saver_fn)

        saver.schedule_save("one.txt", "1")
        saver.schedule_save("two.txt", "2")
        await asyncio.sleep(0.08)

        assert saver_fn.await_count == 2

    @pytest.mark.asyncio
    async def test_flush_replaces_pending(self, saver_fn):
        """Flushing saves the given text and drops the pending one"""
        saver = DebouncedSaver(1000, saver_fn)
        saver.schedule_save("caption.txt", "draft")

        await saver.flush_save("caption.txt", "original")
        await asyncio.sleep(0.01)

        saver_fn.assert_awaited_once_with("caption.txt", "original")
        assert saver.pending_keys == []

    @pytest.mark.asyncio
    async def test_flush_all(self, saver_fn):
        """Flushing all saves every pending caption immediately"""
        saver = DebouncedSaver(1000, saver_fn)
        saver.schedule_save("one.txt", "1")
        saver.schedule_save("two.txt", "2")

        await saver.flush_all()

        assert saver_fn.await_count == 2
        assert saver.pending_keys == []

    @pytest.mark.asyncio
    async def test_cancel(self, saver_fn):
        """A cancelled save never runs"""
        saver = DebouncedSaver(20, saver_fn)
        saver.schedule_save("caption.txt", "x")

        saver.cancel_save("caption.txt")
        await asyncio.sleep(0.05)

        saver_fn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_save_logged(self, caplog):
        """Saver errors are logged instead of raised"""
        saver = DebouncedSaver(0, AsyncMock(side_effect=RuntimeError("disk full")))

        saver.schedule_save("caption.txt", "x")
        await asyncio.sleep(0.02)

        assert "Debounced save failed for caption.txt" in caplog.text

