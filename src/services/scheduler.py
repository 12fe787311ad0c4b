"""
Cooperative timers on the asyncio event loop.

Every timer is handed out as a ScheduledTask, which acts as its cancellation token. Background callbacks that fail
with a GameError are logged and the timer keeps going on its next tick.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Coroutine, Optional

from src.core.exceptions import GameError

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


async def sleep_ms(duration_ms: int) -> None:
    await asyncio.sleep(duration_ms / 1000)


class ScheduledTask:
    def __init__(self, name: str, task: "asyncio.Task[None]") -> None:
        self.name = name
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> None:
        """Wait for the task to finish (a cancelled task counts as finished)"""
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def __repr__(self) -> str:
        return f"ScheduledTask({self.name!r}, done={self.done})"


class Scheduler:
    def __init__(self) -> None:
        self._tasks: set[ScheduledTask] = set()

    def every(
        self,
        interval_ms: int,
        callback: AsyncCallback,
        name: str,
        run_immediately: bool = False,
    ) -> ScheduledTask:
        """Call `callback` every `interval_ms` until cancelled"""

        async def _loop() -> None:
            if run_immediately:
                await self._run_guarded(callback, name)
            while True:
                await sleep_ms(interval_ms)
                await self._run_guarded(callback, name)

        return self.spawn(_loop(), name)

    def after(self, delay_ms: int, callback: AsyncCallback, name: str) -> ScheduledTask:
        """Call `callback` once, `delay_ms` from now"""

        async def _delayed() -> None:
            await sleep_ms(delay_ms)
            await self._run_guarded(callback, name)

        return self.spawn(_delayed(), name)

    def spawn(self, coroutine: Coroutine[None, None, None], name: str) -> ScheduledTask:
        scheduled = ScheduledTask(name, asyncio.get_running_loop().create_task(coroutine, name=name))
        self._tasks.add(scheduled)
        scheduled._task.add_done_callback(lambda _: self._tasks.discard(scheduled))
        return scheduled

    @staticmethod
    def cancel(task: Optional[ScheduledTask]) -> None:
        if task is not None:
            task.cancel()

    async def cancel_all(self) -> None:
        """Tear down every timer (client shutdown)"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            await task.wait()

    @property
    def active(self) -> list[str]:
        return sorted(task.name for task in self._tasks if not task.done)

    @staticmethod
    async def _run_guarded(callback: AsyncCallback, name: str) -> None:
        try:
            await callback()
        except GameError as e:
            logger.error("%s failed: %s", name, e)
