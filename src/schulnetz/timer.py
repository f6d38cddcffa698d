"""Cancellable repeating timer used for the session heartbeat."""

import asyncio
from collections.abc import Awaitable, Callable

from src.schulnetz.logging import get_logger

log = get_logger(__name__)


class SessionTimer:
    """Run ``tick`` every ``interval`` seconds until it returns False or stop() is called.

    The first tick happens one full interval after start(). At most one loop
    runs at a time; start() on a running timer does nothing.
    """

    def __init__(self, interval: float, tick: Callable[[], Awaitable[bool]]) -> None:
        self.interval = interval
        self._tick = tick
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log.debug("session_timer_started", interval=self.interval)

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # A tick that ends the session stops its own timer; the loop exits
        # on its own once the tick returns False.
        if task is not asyncio.current_task():
            task.cancel()
        log.debug("session_timer_stopped")

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not await self._tick():
                    break
                if self._task is not asyncio.current_task():
                    break
        except asyncio.CancelledError:
            pass
