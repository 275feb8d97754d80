"""One-shot timers on the event loop.

Everything that waits on wall time (the change-animation window, the
compact-mode idle timeout) goes through a scheduler with the
``loop.call_later`` shape, so tests can swap in a manual clock.
"""

import asyncio
from typing import Callable, Protocol


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...


class LoopScheduler:
    """Schedules on the running asyncio loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
        return asyncio.get_running_loop().call_later(delay, callback)


class Timer:
    """A single restartable one-shot timer.

    ``start`` while pending cancels the pending expiry and begins a fresh
    one; there is never more than one scheduled callback.
    """

    def __init__(self, scheduler: Scheduler, delay: float, on_expire: Callable[[], None]):
        self._scheduler = scheduler
        self.delay = delay
        self._on_expire = on_expire
        self._handle: Handle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        self.cancel()
        self._handle = self._scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._on_expire()
