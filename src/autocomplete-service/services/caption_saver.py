"""Caption Saver - Per-key debounced saves"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

Saver = Callable[[str, str], Awaitable[None]]


class DebouncedSaver:
    """
    Coalesces bursts of edits into one save per key.
    The latest text wins; keys never cancel each other.
    """

    def __init__(self, delay_ms: int, saver: Saver):
        self.delay_ms = delay_ms
        self.saver = saver
        self._pending: Dict[str, Tuple[asyncio.Task, str]] = {}

    @property
    def pending_keys(self) -> List[str]:
        return list(self._pending)

    def schedule_save(self, key: str, text: str) -> None:
        self.cancel_save(key)
        task = asyncio.get_running_loop().create_task(self._save_later(key, text))
        self._pending[key] = (task, text)

    def cancel_save(self, key: str) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry[0].cancel()

    async def flush_save(self, key: str, text: str) -> None:
        """Drop any pending save for ``key`` and save ``text`` now"""
        self.cancel_save(key)
        await self.saver(key, text)

    async def flush_all(self) -> None:
        """Save every pending text immediately"""
        for key, (_, text) in list(self._pending.items()):
            await self.flush_save(key, text)

    async def _save_later(self, key: str, text: str) -> None:
        await asyncio.sleep(self.delay_ms / 1000.0)
        self._pending.pop(key, None)
        try:
            await self.saver(key, text)
        except Exception as e:
            logger.error(f"Debounced save failed for {key}: {e}", exc_info=True)
