# creepy_companion/services/dispatch.py
import asyncio
from typing import Coroutine, Set

import structlog

log = structlog.get_logger(__name__)


class BackgroundDispatcher:
    """Fire-and-forget runner for collaborator calls.

    Keeps a strong reference to every task until it settles so the event loop
    cannot garbage-collect it mid-flight. Without a running loop there is
    nothing to schedule on, and the work is dropped.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine, name: str = "background") -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            log.debug("background_task_dropped_no_loop", task=name)
            return False
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return True

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.warning("background_task_failed", task=task.get_name(), error=str(error),
                        exc_info=error)

    async def drain(self) -> None:
        """Wait until every submitted task, including ones submitted meanwhile, has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
