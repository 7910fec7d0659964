"""Dataset Session - Open captions, corpus access and debounced saving"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional
from config import settings
from models import DatasetItem, ScanMode
from services.caption_saver import DebouncedSaver
from services.dataset_scanner import scan_dataset_folder

logger = logging.getLogger(__name__)


def write_caption(txt_path: str, text: str) -> None:
    with open(txt_path, "w", encoding="utf-8") as f:
        f.write(text)


class DatasetSession:
    """
    Captions currently open for editing.
    Edits are saved per file after a short debounce; failed saves are kept
    in ``save_errors`` until the next successful save of that file.
    """

    def __init__(self, items: Iterable[DatasetItem] = (), save_delay_ms: Optional[int] = None):
        self.items: Dict[str, DatasetItem] = {item.id: item for item in items}
        self.save_errors: Dict[str, str] = {}
        self.saver = DebouncedSaver(
            settings.save_debounce_ms if save_delay_ms is None else save_delay_ms,
            self._save_caption,
        )

    @classmethod
    def from_folder(cls, folder: str, mode: ScanMode = "recursive") -> "DatasetSession":
        return cls(scan_dataset_folder(folder, mode))

    def texts(self) -> List[str]:
        """Current caption texts, used as the local lexicon corpus"""
        return [item.current_text for item in self.items.values()]

    def get(self, item_id: str) -> Optional[DatasetItem]:
        return self.items.get(item_id)

    def current_text(self, item_id: str) -> Optional[str]:
        item = self.items.get(item_id)
        return item.current_text if item else None

    def update_text(self, item_id: str, text: str) -> None:
        item = self.items.get(item_id)
        if item is None:
            logger.warning(f"Ignoring edit for unknown item {item_id}")
            return
        item.current_text = text
        self.saver.schedule_save(item.txt_path, text)

    async def revert(self, item_id: str) -> None:
        """Restore the text loaded from disk and save it immediately"""
        item = self.items.get(item_id)
        if item is None:
            return
        item.current_text = item.original_text
        await self.saver.flush_save(item.txt_path, item.original_text)

    async def flush(self) -> None:
        await self.saver.flush_all()

    async def _save_caption(self, txt_path: str, text: str) -> None:
        try:
            await asyncio.to_thread(write_caption, txt_path, text)
        except OSError as e:
            logger.error(f"✗ Failed to save {txt_path}: {e}")
            self.save_errors[txt_path] = str(e) or "Unable to save file."
            return
        self.save_errors.pop(txt_path, None)
        logger.debug(f"Saved caption {txt_path}")
