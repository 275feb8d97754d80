"""Native-window capability handed to the view-mode machine.

Every call is best-effort: the dashboard works the same whether or not a
host shell is around to honour it.
"""

import logging
from typing import Protocol

log = logging.getLogger(__name__)


class WindowManager(Protocol):
    async def resize(self, width: int, height: int) -> None: ...

    async def set_resizable(self, resizable: bool) -> None: ...

    async def center(self) -> None: ...

    async def minimize(self) -> None: ...

    async def toggle_maximize(self) -> None: ...

    async def close(self) -> None: ...

    async def set_always_on_top(self, on_top: bool) -> None: ...

    async def is_always_on_top(self) -> bool: ...

    async def is_maximized(self) -> bool: ...


class BrowserWindow:
    """Records the requested geometry for the dashboard page to apply.

    The page reads :meth:`as_dict` through ``/api/state`` and calls
    ``window.resizeTo`` and friends, which browsers only honour for windows
    they opened themselves.
    """

    def __init__(self):
        self.width: int | None = None
        self.height: int | None = None
        self.resizable = True
        self.centered = False
        self.minimized = False
        self.maximized = False
        self.always_on_top = False
        self.close_requested = False
        self.revision = 0

    def _bump(self):
        self.revision += 1

    async def resize(self, width, height):
        self.width, self.height = width, height
        self.centered = False
        self._bump()

    async def set_resizable(self, resizable):
        self.resizable = resizable
        self._bump()

    async def center(self):
        self.centered = True
        self._bump()

    async def minimize(self):
        self.minimized = True
        self._bump()

    async def toggle_maximize(self):
        self.maximized = not self.maximized
        self._bump()

    async def close(self):
        self.close_requested = True
        self._bump()

    async def set_always_on_top(self, on_top):
        self.always_on_top = on_top
        self._bump()

    async def is_always_on_top(self):
        return self.always_on_top

    async def is_maximized(self):
        return self.maximized

    def as_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "resizable": self.resizable,
            "centered": self.centered,
            "minimized": self.minimized,
            "maximized": self.maximized,
            "alwaysOnTop": self.always_on_top,
            "closeRequested": self.close_requested,
            "revision": self.revision,
        }


class NullWindow:
    """No host shell: log the request and carry on."""

    async def resize(self, width, height):
        log.debug("resize(%d, %d) ignored, no window", width, height)

    async def set_resizable(self, resizable):
        log.debug("set_resizable(%s) ignored, no window", resizable)

    async def center(self):
        log.debug("center() ignored, no window")

    async def minimize(self):
        log.debug("minimize() ignored, no window")

    async def toggle_maximize(self):
        log.debug("toggle_maximize() ignored, no window")

    async def close(self):
        log.debug("close() ignored, no window")

    async def set_always_on_top(self, on_top):
        log.debug("set_always_on_top(%s) ignored, no window", on_top)

    async def is_always_on_top(self):
        return False

    async def is_maximized(self):
        return False
