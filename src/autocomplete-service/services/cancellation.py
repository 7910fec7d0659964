"""Request Cancellation - One cancellation source merged from three triggers"""
import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

FIRST_TOKEN_TIMEOUT = "first-token-timeout"
OVERALL_TIMEOUT = "overall-timeout"
EXTERNALLY_CANCELLED = "externally-cancelled"


class RequestAborted(Exception):
    """Raised when a guarded request is cancelled by one of its triggers"""

    def __init__(self, reason: str):
        super().__init__(f"Request aborted: {reason}")
        self.reason = reason


class RequestCancellation:
    """
    Guards a single remote request with:
    1. First-token timer (disarmed by ``mark_first_token_received``)
    2. Overall timer (hard ceiling regardless of token arrival)
    3. Optional external ``asyncio.Event`` set by the caller

    Whichever fires first cancels the request task. Both timers are released
    on every exit path.
    """

    def __init__(
        self,
        first_token_timeout_ms: int,
        overall_timeout_ms: int,
        cancel_event: Optional[asyncio.Event] = None
    ):
        self.first_token_timeout_ms = first_token_timeout_ms
        self.overall_timeout_ms = overall_timeout_ms
        self.cancel_event = cancel_event
        self.first_token_received = False
        self.reason: Optional[str] = None

        self._task: Optional[asyncio.Task] = None
        self._first_token_timer: Optional[asyncio.TimerHandle] = None
        self._overall_timer: Optional[asyncio.TimerHandle] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def timed_out(self) -> bool:
        """True only when no token arrived before the first-token deadline"""
        return self.reason == FIRST_TOKEN_TIMEOUT

    @property
    def active_timers(self) -> int:
        return sum(1 for timer in (self._first_token_timer, self._overall_timer) if timer is not None)

    def mark_first_token_received(self) -> None:
        if self.first_token_received:
            return
        self.first_token_received = True
        if self._first_token_timer is not None:
            self._first_token_timer.cancel()
            self._first_token_timer = None

    def abort(self, reason: str) -> None:
        if self.reason is not None or self._task is None or self._task.done():
            return
        self.reason = reason
        logger.debug(f"Aborting request: {reason}")
        self._task.cancel()

    def _on_first_token_deadline(self) -> None:
        self._first_token_timer = None
        if not self.first_token_received:
            self.abort(FIRST_TOKEN_TIMEOUT)

    def _on_overall_deadline(self) -> None:
        self._overall_timer = None
        self.abort(OVERALL_TIMEOUT)

    async def _watch_external(self) -> None:
        await self.cancel_event.wait()
        self.abort(EXTERNALLY_CANCELLED)

    def clear(self) -> None:
        """Release both timers and the external watcher"""
        for timer in (self._first_token_timer, self._overall_timer):
            if timer is not None:
                timer.cancel()
        self._first_token_timer = None
        self._overall_timer = None
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Run ``awaitable`` under the merged cancellation.

        Raises:
            RequestAborted: when a timer or the external event fired
        """
        loop = asyncio.get_running_loop()
        self._task = asyncio.ensure_future(awaitable)
        self._first_token_timer = loop.call_later(
            self.first_token_timeout_ms / 1000.0, self._on_first_token_deadline
        )
        self._overall_timer = loop.call_later(
            self.overall_timeout_ms / 1000.0, self._on_overall_deadline
        )

        if self.cancel_event is not None:
            if self.cancel_event.is_set():
                self.abort(EXTERNALLY_CANCELLED)
            else:
                self._watcher = loop.create_task(self._watch_external())

        try:
            return await self._task
        except asyncio.CancelledError:
            if self.reason is None:
                # The caller itself was cancelled
                raise
            raise RequestAborted(self.reason) from None
        finally:
            self.clear()
