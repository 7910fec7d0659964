"""Unit tests for the merged request cancellation"""
import asyncio
import pytest
from services.cancellation import (
    EXTERNALLY_CANCELLED,
    FIRST_TOKEN_TIMEOUT,
    OVERALL_TIMEOUT,
    RequestAborted,
    RequestCancellation,
)


class TestRequestCancellation:
    """Test cases for RequestCancellation"""

    @pytest.mark.asyncio
    async def test_completes_normally(self):
        """A finished request returns its value with timers released"""
        cancellation = RequestCancellation(1000, 2000)

        async def work():
            cancellation.mark_first_token_received()
            return "far"

        assert await cancellation.run(work()) == "far"
        assert cancellation.reason is None
        assert cancellation.active_timers == 0

    @pytest.mark.asyncio
    async def test_first_token_timeout(self):
        """No token before the deadline aborts as timed out"""
        cancellation = RequestCancellation(20, 2000)

        with pytest.raises(RequestAborted) as exc_info:
            await cancellation.run(asyncio.sleep(1))

        assert exc_info.value.reason == FIRST_TOKEN_TIMEOUT
        assert cancellation.timed_out is True
        assert cancellation.active_timers == 0

    @pytest.mark.asyncio
    async def test_overall_timeout_after_first_token(self):
        """Overall deadline still applies once tokens are flowing"""
        cancellation = RequestCancellation(20, 60)

        async def work():
            cancellation.mark_first_token_received()
            await asyncio.sleep(1)

        with pytest.raises(RequestAborted) as exc_info:
            await cancellation.run(work())

        assert exc_info.value.reason == OVERALL_TIMEOUT
        assert cancellation.timed_out is False
        assert cancellation.active_timers == 0

    @pytest.mark.asyncio
    async def test_external_event(self):
        """Setting the caller's event aborts the request"""
        event = asyncio.Event()
        cancellation = RequestCancellation(1000, 2000, event)
        asyncio.get_running_loop().call_later(0.02, event.set)

        with pytest.raises(RequestAborted) as exc_info:
            await cancellation.run(asyncio.sleep(1))

        assert exc_info.value.reason == EXTERNALLY_CANCELLED
        assert cancellation.timed_out is False

    @pytest.mark.asyncio
    async def test_event_already_set(self):
        """An event set before the request starts aborts at once"""
        event = asyncio.Event()
        event.set()
        cancellation = RequestCancellation(1000, 2000, event)

        with pytest.raises(RequestAborted) as exc_info:
            await cancellation.run(asyncio.sleep(1))

        assert exc_info.value.reason == EXTERNALLY_CANCELLED

    @pytest.mark.asyncio
    async def test_errors_propagate_and_timers_cleared(self):
        """Errors from the request propagate unchanged"""
        cancellation = RequestCancellation(1000, 2000)

        async def work():
            raise ValueError("bad chunk")

        with pytest.raises(ValueError):
            await cancellation.run(work())

        assert cancellation.active_timers == 0
        assert cancellation.reason is None

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        """Cancelling the caller is not reported as an abort"""
        cancellation = RequestCancellation(1000, 2000)
        task = asyncio.ensure_future(cancellation.run(asyncio.sleep(1)))
        await asyncio.sleep(0.01)

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert cancellation.active_timers == 0

    @pytest.mark.asyncio
    async def test_late_timer_is_noop(self):
        """A deadline firing after completion changes nothing"""
        cancellation = RequestCancellation(1000, 2000)

        async def work():
            return 1

        await cancellation.run(work())
        cancellation.abort(OVERALL_TIMEOUT)

        assert cancellation.reason is None

