# creepy_companion/services/scheduler.py
import asyncio
import inspect
from typing import Any, Callable, Optional

import structlog

from creepy_companion.engine.decay import REAL_MS_PER_GAME_MINUTE

log = structlog.get_logger(__name__)


class Scheduler:
    """Fixed-cadence asyncio timer driving the Store's tick.

    Deadlines are computed from the loop clock, so a slow tick does not push
    every following tick back. An exception in the callback is logged and the
    next tick still fires.
    """

    def __init__(self, interval_ms: int = REAL_MS_PER_GAME_MINUTE):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.interval_ms = interval_ms
        self._task: Optional[asyncio.Task] = None
        self.ticks_fired = 0

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: Callable[[], Any]) -> bool:
        """Start ticking on the running loop. Returns False if already running."""
        if self.is_running:
            log.debug("scheduler_already_running")
            return False
        self._task = asyncio.get_running_loop().create_task(self._run(callback), name="scheduler")
        log.info("scheduler_started", interval_ms=self.interval_ms)
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("scheduler_stopped", ticks_fired=self.ticks_fired)

    async def _run(self, callback: Callable[[], Any]) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.interval_seconds
        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            deadline += self.interval_seconds
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error("scheduled_tick_failed", error=str(e), exc_info=True)
            self.ticks_fired += 1
            # Fell more than one interval behind: resync instead of bursting
            if loop.time() - deadline > self.interval_seconds:
                deadline = loop.time() + self.interval_seconds
