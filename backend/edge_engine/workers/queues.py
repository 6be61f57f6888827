from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

JobHandler = Callable[[], Awaitable[Any]]


class JobQueue:
    """A named repeating job with at most one run in flight.

    Each run is bounded by ``lock_duration``; a run that overruns is cancelled
    and counts as a failed attempt. Failed attempts are retried up to
    ``attempts`` times with exponential backoff, after which the run is logged
    as failed and the loop waits for the next interval.
    """

    def __init__(
        self,
        name: str,
        handler: JobHandler,
        interval: float,
        lock_duration: float,
        attempts: int = 3,
        backoff: float = 5.0,
        run_immediately: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.handler = handler
        self.interval = interval
        self.lock_duration = lock_duration
        self.attempts = max(1, attempts)
        self.backoff = backoff
        self.run_immediately = run_immediately
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        """One scheduled run including retries. Returns whether it succeeded."""
        async with self._lock:
            for attempt in range(1, self.attempts + 1):
                try:
                    await asyncio.wait_for(self.handler(), timeout=self.lock_duration)
                    return True
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Job {self.name} exceeded {self.lock_duration}s lock (attempt {attempt}/{self.attempts})"
                    )
                except Exception as e:
                    logger.warning(f"Job {self.name} failed (attempt {attempt}/{self.attempts}): {e}")

                if attempt < self.attempts:
                    await self._sleep(self.backoff * 2 ** (attempt - 1))

            logger.error(f"Job {self.name} failed after {self.attempts} attempts")
            return False

    async def _loop(self):
        logger.info(f"Queue {self.name} started (every {self.interval}s)")
        first = True
        while True:
            try:
                if not (first and self.run_immediately):
                    await self._sleep(self.interval)
                first = False
                await self.run_once()
            except asyncio.CancelledError:
                logger.info(f"Queue {self.name} cancelled")
                break

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"queue:{self.name}")

    async def close(self):
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
