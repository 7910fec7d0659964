"""Ollama Manager - HTTP access to the local inference server"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional
import httpx
from config import settings

logger = logging.getLogger(__name__)


class OllamaManager:
    """Manages the HTTP client and the three Ollama endpoints we consume"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        # Request deadlines are enforced by RequestCancellation, not by httpx
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=httpx.Timeout(None, connect=5.0)
        )

    # === Model listing ===

    async def get_tags(self) -> httpx.Response:
        """GET /api/tags (installed models)"""
        return await self.client.get("/api/tags")

    async def get_running(self) -> httpx.Response:
        """GET /api/ps (loaded models and their VRAM residency)"""
        return await self.client.get("/api/ps")

    @staticmethod
    def extract_model_names(body: Dict[str, Any]) -> List[str]:
        """Unique model names, sorted case-insensitively"""
        if not isinstance(body, dict):
            return []
        names = {
            entry.get("name")
            for entry in (body.get("models") or [])
            if isinstance(entry, dict) and entry.get("name")
        }
        return sorted(names, key=lambda name: (name.casefold(), name))

    async def list_models(self) -> List[str]:
        """Installed model names, or [] when the server cannot be queried"""
        try:
            response = await self.get_tags()
            if not response.is_success:
                logger.debug(f"Model listing failed with HTTP {response.status_code}")
                return []
            return self.extract_model_names(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Model listing unavailable: {e}")
            return []

    # === Chat ===

    @asynccontextmanager
    async def stream_chat(self, payload: Dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """
        POST /api/chat and yield the streaming response.
        Leaving the context closes the connection, which stops generation
        reads immediately.
        """
        async with self.client.stream("POST", "/api/chat", json=payload) as response:
            yield response

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Ollama client closed")
