"""Shared async polling loop abstraction."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Awaitable

from recur.infrastructure.logger import logger


class PollLoop:
    """Calls an async function once per interval until stopped.

    The interval is measured from the start of one call to the start of the
    next, so a slow call shortens the following sleep instead of drifting
    the cadence. A call that overruns the interval is followed immediately
    by the next one.
    """

    def __init__(self, name: str, interval_s: float, fn: Callable[[], Awaitable[object]]) -> None:
        self._name = name
        self._interval = interval_s
        self._fn = fn
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self.iterations = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop as a background task."""
        self._stopped = False
        self._task = asyncio.create_task(self._loop())
        logger.info(f"{self._name} loop started", interval_s=self._interval)

    def stop(self) -> None:
        """Stop the polling loop."""
        self._stopped = True
        if self._task:
            self._task.cancel()
            self._task = None
            logger.info(f"{self._name} loop stopped", iterations=self.iterations)

    async def _loop(self) -> None:
        while not self._stopped:
            started = time.monotonic()
            try:
                await self._fn()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception(f"Error in {self._name} loop")
            self.iterations += 1
            if not self._stopped:
                elapsed = time.monotonic() - started
                await asyncio.sleep(max(0.0, self._interval - elapsed))


def start_poll_loop(name: str, interval_s: float, fn: Callable[[], Awaitable[object]]) -> PollLoop:
    """Create and start a polling loop. Returns a handle to stop it."""
    loop = PollLoop(name, interval_s, fn)
    loop.start()
    return loop
