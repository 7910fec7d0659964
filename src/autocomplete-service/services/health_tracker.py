"""Health Tracker - Rolling telemetry and inference server probes"""
import asyncio
import logging
import math
from collections import deque
from typing import Callable, Deque, Optional
import httpx
from config import settings
from models import AutocompleteSettings, HealthStatus
from services.ollama_manager import OllamaManager

logger = logging.getLogger(__name__)


class RuntimeStats:
    """Request/timeout counters and a bounded window of recent latencies"""

    def __init__(self, window_size: Optional[int] = None):
        self.request_count = 0
        self.timeout_count = 0
        self.latencies: Deque[int] = deque(maxlen=window_size or settings.latency_window_size)
        self.last_latency_ms: Optional[int] = None

    def record_request(self) -> None:
        self.request_count += 1

    def record_timeout(self) -> None:
        self.timeout_count += 1

    def record_latency(self, latency_ms: int) -> None:
        self.last_latency_ms = latency_ms
        self.latencies.append(latency_ms)

    @property
    def median_latency_ms(self) -> Optional[int]:
        if not self.latencies:
            return None
        ordered = sorted(self.latencies)
        mid = len(ordered) // 2
        if len(ordered) % 2 == 0:
            return int(math.floor((ordered[mid - 1] + ordered[mid]) / 2 + 0.5))
        return ordered[mid]

    def status(self, ok: bool, reason: Optional[str] = None, gpu_likely: Optional[bool] = None) -> HealthStatus:
        """HealthStatus carrying the current telemetry"""
        return HealthStatus(
            ok=ok,
            reason=reason,
            gpu_likely=gpu_likely,
            request_count=self.request_count,
            timeout_count=self.timeout_count,
            median_latency_ms=self.median_latency_ms,
            last_latency_ms=self.last_latency_ms,
        )


class HealthTracker:
    """
    Probes Ollama for reachability and model availability.
    Telemetry is attached to every report, including failures, so the UI can
    show the latency trend while the server is down.
    """

    def __init__(self, ollama: OllamaManager, stats: RuntimeStats):
        self.ollama = ollama
        self.stats = stats

    async def check(self, autocomplete_settings: AutocompleteSettings) -> HealthStatus:
        if not autocomplete_settings.enabled:
            return self.stats.status(False, "Autocomplete disabled in settings")

        model = autocomplete_settings.model
        try:
            response = await self.ollama.get_tags()
            if not response.is_success:
                return self.stats.status(False, f"Ollama responded with HTTP {response.status_code}")
            available = set(self.ollama.extract_model_names(response.json()))
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Health probe failed: {e}")
            return self.stats.status(False, f"Ollama unavailable at {self.ollama.base_url}")

        if model not in available:
            return self.stats.status(False, f'Model "{model}" not found. Run: ollama pull {model}')

        return self.stats.status(True, gpu_likely=await self._probe_gpu())

    async def _probe_gpu(self) -> Optional[bool]:
        """Best-effort VRAM residency check; None when unknown"""
        try:
            response = await self.ollama.get_running()
            if not response.is_success:
                return None
            body = response.json()
            if not isinstance(body, dict):
                return None
            models = body.get("models") or []
            return any(
                (entry.get("size_vram") or 0) > 0
                for entry in models
                if isinstance(entry, dict)
            )
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.debug(f"GPU probe failed: {e}")
            return None


class HealthMonitor:
    """Re-probes health on a fixed interval in a background task"""

    def __init__(
        self,
        tracker: HealthTracker,
        settings_provider: Callable[[], AutocompleteSettings],
        interval_s: Optional[float] = None
    ):
        self.tracker = tracker
        self.settings_provider = settings_provider
        self.interval_s = interval_s if interval_s is not None else settings.health_poll_interval_s
        self.latest: Optional[HealthStatus] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def ok(self) -> bool:
        return bool(self.latest and self.latest.ok)

    async def refresh(self) -> HealthStatus:
        previous = self.latest
        self.latest = await self.tracker.check(self.settings_provider())
        if previous is None or previous.ok != self.latest.ok:
            if self.latest.ok:
                logger.info(f"✓ Autocomplete available (gpu likely: {self.latest.gpu_likely})")
            else:
                logger.warning(f"⚠️  Autocomplete unavailable: {self.latest.reason}")
        return self.latest

    async def _run(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self.interval_s)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
