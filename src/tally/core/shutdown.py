"""Graceful shutdown: stop advertising health and let in-flight requests finish."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from src.tally.core.logging import get_logger

logger = get_logger(__name__)


class RequestTracker:
    """In-flight request counter consulted by the lifespan and by /health."""

    def __init__(self) -> None:
        self._in_flight = 0
        self._shutting_down = False
        self._idle = asyncio.Condition()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def in_flight_count(self) -> int:
        return self._in_flight

    @asynccontextmanager
    async def track_request(self) -> AsyncGenerator[None]:
        async with self._idle:
            self._in_flight += 1
        try:
            yield
        finally:
            async with self._idle:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._idle.notify_all()

    async def start_shutdown(self) -> None:
        self._shutting_down = True

    async def wait_for_drain(self, timeout: float) -> bool:
        """Block until no request is in flight. Returns False on timeout."""
        try:
            async with asyncio.timeout(timeout):
                async with self._idle:
                    await self._idle.wait_for(lambda: self._in_flight == 0)
        except TimeoutError:
            logger.warning("Shutdown drain timed out", timeout=timeout, in_flight=self._in_flight)
            return False
        return True

    def reset(self) -> None:
        """Back to a fresh, accepting tracker. Tests only."""
        self._in_flight = 0
        self._shutting_down = False
        self._idle = asyncio.Condition()


request_tracker = RequestTracker()
