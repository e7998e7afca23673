"""
Debounce scheduler

Coalesces rapid repeated triggers into a single delayed call. Timers run on
the event loop's monotonic clock and each key holds at most one pending
handle; scheduling a key again cancels the previous handle first.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Set, Union

logger = logging.getLogger(__name__)

DebouncedFn = Callable[[], Union[None, Awaitable[None]]]


@dataclass
class DebounceHandle:
    key: str
    deadline: float
    timer: asyncio.TimerHandle

    def cancel(self) -> None:
        self.timer.cancel()


class Debouncer:
    def __init__(self):
        self._handles: Dict[str, DebounceHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    def debounce(self, key: str, delay: float, fn: DebouncedFn) -> DebounceHandle:
        """
        Schedule ``fn`` to run ``delay`` seconds from now under ``key``.

        Any pending call for the same key is cancelled and replaced. Must be
        called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        self.cancel(key)
        timer = loop.call_later(delay, self._fire, key, fn)
        handle = DebounceHandle(key=key, deadline=loop.time() + delay, timer=timer)
        self._handles[key] = handle
        return handle

    def is_pending(self, key: str) -> bool:
        return key in self._handles

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)

    def _fire(self, key: str, fn: DebouncedFn) -> None:
        self._handles.pop(key, None)
        try:
            result = fn()
        except Exception as e:
            logger.error("Debounced call %s failed: %s", key, e)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Debounced task failed: %s", task.exception())

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait for debounced calls that already fired to finish running"""
        if self._tasks:
            await asyncio.wait(set(self._tasks), timeout=timeout)
