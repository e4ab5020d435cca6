"""Tests for the in-flight request tracker used during graceful shutdown."""

import asyncio

import pytest

from src.tally.core.shutdown import RequestTracker

pytestmark = [pytest.mark.unit, pytest.mark.asyncio]


@pytest.fixture
def tracker() -> RequestTracker:
    return RequestTracker()


async def hold(tracker: RequestTracker, release: asyncio.Event) -> None:
    async with tracker.track_request():
        await release.wait()


class TestRequestTracker:
    async def test_counts_nested_requests(self, tracker: RequestTracker):
        async with tracker.track_request():
            async with tracker.track_request():
                assert tracker.in_flight_count == 2
            assert tracker.in_flight_count == 1
        assert tracker.in_flight_count == 0

    async def test_count_drops_when_request_fails(self, tracker: RequestTracker):
        with pytest.raises(RuntimeError):
            async with tracker.track_request():
                raise RuntimeError("handler blew up")
        assert tracker.in_flight_count == 0

    async def test_idle_tracker_drains_immediately(self, tracker: RequestTracker):
        await tracker.start_shutdown()

        assert tracker.is_shutting_down
        assert await tracker.wait_for_drain(timeout=0.5) is True

    async def test_drain_waits_for_last_request(self, tracker: RequestTracker):
        release = asyncio.Event()
        task = asyncio.create_task(hold(tracker, release))
        await asyncio.sleep(0)
        await tracker.start_shutdown()

        waiter = asyncio.create_task(tracker.wait_for_drain(timeout=1.0))
        await asyncio.sleep(0.01)
        assert not waiter.done()

        release.set()
        assert await waiter is True
        await task

    async def test_drain_gives_up_after_timeout(self, tracker: RequestTracker):
        release = asyncio.Event()
        task = asyncio.create_task(hold(tracker, release))
        await asyncio.sleep(0)
        await tracker.start_shutdown()

        assert await tracker.wait_for_drain(timeout=0.05) is False
        assert tracker.in_flight_count == 1

        release.set()
        await task

    async def test_reset(self, tracker: RequestTracker):
        await tracker.start_shutdown()
        tracker.reset()

        assert not tracker.is_shutting_down
        assert tracker.in_flight_count == 0
