"""Cancellable asyncio timers shared by the core components"""

import asyncio
import logging
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle returned by TimerGroup. cancel() is idempotent."""

    def __init__(self, group: "TimerGroup", name: str):
        self._group = group
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False

    @property
    def active(self) -> bool:
        if self._cancelled:
            return False
        if self._task is not None:
            return not self._task.done()
        if self._handle is not None:
            return not self._handle.cancelled() and self in self._group._handles
        return False

    def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()
        if self._handle is not None:
            self._handle.cancel()
        self._group._handles.discard(self)
        logger.debug(f"Timer '{self.name}' cancelled")


class TimerGroup:
    """Periodic and one-shot timers running on the current event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: Set[TimerHandle] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def every(self, interval: float, callback: Callable[[], None], name: str = "periodic") -> TimerHandle:
        """Run callback every `interval` seconds until cancelled."""
        handle = TimerHandle(self, name)
        handle._task = self.loop.create_task(self._run_every(interval, callback, name))
        self._handles.add(handle)
        return handle

    def call_later(self, delay: float, callback: Callable[[], None], name: str = "one-shot") -> TimerHandle:
        """Run callback once after `delay` seconds."""
        handle = TimerHandle(self, name)

        def _fire():
            self._handles.discard(handle)
            self._invoke(callback, name)

        handle._handle = self.loop.call_later(delay, _fire)
        self._handles.add(handle)
        return handle

    def cancel_all(self):
        for handle in list(self._handles):
            handle.cancel()

    def __len__(self):
        return len(self._handles)

    async def _run_every(self, interval: float, callback: Callable[[], None], name: str):
        while True:
            await asyncio.sleep(interval)
            self._invoke(callback, name)

    @staticmethod
    def _invoke(callback: Callable[[], None], name: str):
        try:
            callback()
        except Exception as e:
            logger.error(f"Error in timer '{name}': {e}", exc_info=True)
