from __future__ import annotations
import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Shared throttle + cooldown state for one upstream provider.

    Built once by the composition root and handed to every consumer that talks
    to the provider, so a 429 seen by one job is honoured by the others. Tests
    pass their own clock and sleep.
    """

    def __init__(
        self,
        min_interval: float = 0.2,
        cooldown_seconds: float = 60.0,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_request_at: float | None = None
        self._reset_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def reset_at(self) -> float | None:
        return self._reset_at

    def is_limited(self) -> bool:
        if self._reset_at is None:
            return False
        if self._clock() >= self._reset_at:
            logger.info("Rate limit cooldown expired")
            self._reset_at = None
            return False
        return True

    def trip(self, reason: str = "") -> None:
        self._reset_at = self._clock() + self.cooldown_seconds
        logger.warning(f"Rate limited, cooling down for {self.cooldown_seconds:.0f}s {reason}".rstrip())

    async def throttle(self) -> None:
        """Wait until at least min_interval has passed since the previous request."""
        async with self._lock:
            now = self._clock()
            if self._last_request_at is not None:
                wait = self.min_interval - (now - self._last_request_at)
                if wait > 0:
                    await self._sleep(wait)
                    now = self._clock()
            self._last_request_at = now
