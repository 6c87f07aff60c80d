"""
Minimum-interval rate limiter for language-model calls.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Spaces successive callers at least ``min_interval`` seconds apart.

    The last-call timestamp is read and stamped under one lock, so concurrent
    callers are serialised. Clock and sleep are injectable for tests.
    """

    def __init__(
        self,
        min_interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval cannot be negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Block until the interval since the previous call has elapsed."""
        async with self._lock:
            if self._last_call is not None:
                remaining = self.min_interval - (self._clock() - self._last_call)
                if remaining > 0:
                    logger.debug("Rate limit wait", seconds=round(remaining, 3))
                    await self._sleep(remaining)
            self._last_call = self._clock()

    @property
    def last_call(self) -> Optional[float]:
        return self._last_call
