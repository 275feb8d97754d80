"""Display density state machine: normal, compact, mini.

The cycle command rotates normal -> compact -> mini -> normal. Compact
drops to mini on its own after ``COMPACT_IDLE_S`` without pointer activity;
pointer enter/leave in compact restarts that countdown. Mini comes back to
compact on restore (double-click).

Each transition asks the window manager for the matching geometry. Those
requests run in the background in the order they were made, and their
failures never affect the machine's state.
"""

import asyncio
import logging
from typing import Callable

from .config import COMPACT_IDLE_S, COMPACT_SIZE, MINI_SIZE, NORMAL_SIZE
from .models import ActiveTab, ViewMode
from .timers import LoopScheduler, Scheduler, Timer
from .window import WindowManager

log = logging.getLogger(__name__)

NEXT_MODE = {
    ViewMode.NORMAL: ViewMode.COMPACT,
    ViewMode.COMPACT: ViewMode.MINI,
    ViewMode.MINI: ViewMode.NORMAL,
}

MODE_SIZE = {
    ViewMode.NORMAL: NORMAL_SIZE,
    ViewMode.COMPACT: COMPACT_SIZE,
    ViewMode.MINI: MINI_SIZE,
}


class ViewModeMachine:
    def __init__(self, window: WindowManager, scheduler: Scheduler | None = None,
                 idle_s: float = COMPACT_IDLE_S):
        self._window = window
        self.mode = ViewMode.NORMAL
        self.tab = ActiveTab.OVERALL
        self.always_on_top = False
        self.maximized = False
        self._idle = Timer(scheduler or LoopScheduler(), idle_s, self._on_idle)
        self._last_request: asyncio.Future | None = None
        self._listeners: list[Callable[[], None]] = []

    @property
    def idle_pending(self) -> bool:
        return self._idle.pending

    def as_dict(self) -> dict:
        w, h = MODE_SIZE[self.mode]
        return {
            "mode": self.mode.value,
            "tab": self.tab.value,
            "alwaysOnTop": self.always_on_top,
            "maximized": self.maximized,
            "idlePending": self.idle_pending,
            "width": w,
            "height": h,
        }

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def remove():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return remove

    def _notify(self) -> None:
        for cb in list(self._listeners):
            try:
                cb()
            except Exception:
                log.exception("View listener failed")

    # ── Commands ──

    def cycle(self) -> ViewMode:
        self._enter(NEXT_MODE[self.mode])
        return self.mode

    def restore(self) -> ViewMode:
        if self.mode is ViewMode.MINI:
            self._enter(ViewMode.COMPACT)
        return self.mode

    def pointer_enter(self) -> None:
        if self.mode is ViewMode.COMPACT:
            self._idle.start()

    def pointer_leave(self) -> None:
        if self.mode is ViewMode.COMPACT:
            self._idle.start()

    def set_tab(self, tab: ActiveTab) -> None:
        if tab is not self.tab:
            self.tab = tab
            self._notify()

    def toggle_tab(self) -> ActiveTab:
        self.set_tab(ActiveTab.PROJECTS if self.tab is ActiveTab.OVERALL else ActiveTab.OVERALL)
        return self.tab

    def toggle_always_on_top(self) -> bool:
        self.always_on_top = not self.always_on_top
        self._request(self._call("set_always_on_top", self.always_on_top))
        self._notify()
        return self.always_on_top

    def minimize(self) -> None:
        self._request(self._call("minimize"))

    def toggle_maximize(self) -> None:
        self._request(self._toggle_maximize())

    def close_window(self) -> None:
        self._request(self._call("close"))

    def on_window_resized(self) -> None:
        self._request(self._refresh_maximized())

    async def sync_window_state(self) -> None:
        """Pick up pin and maximize state from the window, if there is one."""
        on_top = await self._call("is_always_on_top")
        if on_top is not None:
            self.always_on_top = bool(on_top)
        await self._refresh_maximized()

    def close(self) -> None:
        self._idle.cancel()
        self._listeners.clear()

    async def drain(self) -> None:
        """Wait for queued window requests to finish."""
        if self._last_request is not None:
            await asyncio.wait([self._last_request])

    # ── Transitions ──

    def _enter(self, mode: ViewMode) -> None:
        if mode is self.mode:
            return
        previous = self.mode
        if previous is ViewMode.COMPACT:
            self._idle.cancel()
        self.mode = mode
        if mode is ViewMode.COMPACT:
            self._idle.start()
        log.info("View mode %s -> %s", previous.value, mode.value)
        self._request(self._apply_geometry(mode))
        self._notify()

    def _on_idle(self) -> None:
        if self.mode is ViewMode.COMPACT:
            log.debug("Compact view idle, shrinking to mini")
            self._enter(ViewMode.MINI)

    # ── Window requests ──

    async def _apply_geometry(self, mode: ViewMode) -> None:
        width, height = MODE_SIZE[mode]
        if mode is ViewMode.NORMAL:
            await self._call("set_resizable", True)
            await self._call("resize", width, height)
            await self._call("center")
        else:
            await self._call("set_resizable", False)
            await self._call("resize", width, height)
        self._notify()

    async def _toggle_maximize(self) -> None:
        await self._call("toggle_maximize")
        await self._refresh_maximized()

    async def _refresh_maximized(self) -> None:
        maximized = await self._call("is_maximized")
        if maximized is not None and bool(maximized) != self.maximized:
            self.maximized = bool(maximized)
            self._notify()

    async def _call(self, name: str, *args):
        try:
            return await getattr(self._window, name)(*args)
        except Exception as e:
            log.debug("Window %s%r failed: %s", name, args, e)
            return None

    def _request(self, coro) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No event loop, dropping window request")
            coro.close()
            return
        previous = self._last_request
        self._last_request = asyncio.ensure_future(self._after(previous, coro))

    @staticmethod
    async def _after(previous: asyncio.Future | None, coro) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        await coro
