"""Autocomplete Engine - The autocomplete API exposed to the UI layer"""
import asyncio
import logging
from typing import Any, List, Mapping, Optional
from models import AutocompleteResponse, AutocompleteSettings, HealthStatus
from services.completion_client import RemoteCompletionClient
from services.health_tracker import HealthTracker, RuntimeStats
from services.ollama_manager import OllamaManager
from services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class AutocompleteEngine:
    """
    Owns one autocomplete session: settings, telemetry and the Ollama client.
    Nothing here is module-global, so independent engines can coexist.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        ollama: Optional[OllamaManager] = None,
        stats: Optional[RuntimeStats] = None
    ):
        self.settings_store = settings_store
        self.ollama = ollama or OllamaManager()
        self.stats = stats or RuntimeStats()
        self.client = RemoteCompletionClient(self.ollama, self.stats)
        self.health_tracker = HealthTracker(self.ollama, self.stats)

        logger.info(f"✓ Autocomplete engine ready ({self.ollama.base_url})")

    async def suggest(
        self,
        text: str,
        cursor_index: int,
        cancel_event: Optional[asyncio.Event] = None
    ) -> AutocompleteResponse:
        return await self.client.suggest(text, cursor_index, self.settings_store.get(), cancel_event)

    async def health(self) -> HealthStatus:
        return await self.health_tracker.check(self.settings_store.get())

    async def list_models(self) -> List[str]:
        return await self.ollama.list_models()

    def get_settings(self) -> AutocompleteSettings:
        return self.settings_store.get()

    def update_settings(self, updates: Mapping[str, Any]) -> AutocompleteSettings:
        return self.settings_store.update(updates)

    def reset_settings(self) -> AutocompleteSettings:
        return self.settings_store.reset()

    async def close(self) -> None:
        await self.ollama.close()
