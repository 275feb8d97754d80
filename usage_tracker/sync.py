"""Keeps the local snapshot in step with the backend.

The controller does one full fetch at start, then follows either the
backend's push stream (default) or, with the polling strategy, asks for a
delta on a fixed interval. Deltas are merged into the store. A delta that
asks for a full refresh triggers a refetch instead.

Only ``full_refetch`` failures reach the visible ``error``. Everything on the
background path is logged and absorbed so the last good data stays up.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError

from .backend import Backend, BackendError
from .config import (
    ANIMATION_WINDOW_S, DATA_PATH, HEARTBEAT_INTERVAL_S, POLL_INTERVAL_S,
    RECONNECT_INITIAL_S, RECONNECT_MAX_S,
)
from .merge import is_empty, merge
from .models import DeltaMessage
from .store import SnapshotStore
from .timers import LoopScheduler, Scheduler, Timer

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushStrategy:
    reconnect_initial_s: float = RECONNECT_INITIAL_S
    reconnect_max_s: float = RECONNECT_MAX_S


@dataclass(frozen=True)
class PollingStrategy:
    interval_s: float = POLL_INTERVAL_S


SyncStrategy = PushStrategy | PollingStrategy


def strategy_from_name(name: str) -> SyncStrategy:
    if name == "poll":
        return PollingStrategy()
    if name != "push":
        log.warning("Unknown sync strategy %r, using push", name)
    return PushStrategy()


class AnimationSignal:
    """Level-triggered "recently changed" flag.

    ``trigger`` holds the flag up for ``window`` seconds from the latest
    call; a trigger inside the window extends it.
    """

    def __init__(self, scheduler: Scheduler, window: float = ANIMATION_WINDOW_S,
                 on_change: Callable[[], None] | None = None):
        self._active = False
        self._on_change = on_change
        self._timer = Timer(scheduler, window, self._expire)

    @property
    def active(self) -> bool:
        return self._active

    def trigger(self) -> None:
        self._timer.start()
        if not self._active:
            self._active = True
            self._changed()

    def cancel(self) -> None:
        self._timer.cancel()
        if self._active:
            self._active = False
            self._changed()

    def _expire(self) -> None:
        self._active = False
        self._changed()

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()


class SyncController:
    def __init__(self, backend: Backend, store: SnapshotStore | None = None,
                 strategy: SyncStrategy | None = None, data_path: str | None = DATA_PATH,
                 scheduler: Scheduler | None = None, clock=time.time, sleep=asyncio.sleep):
        self.backend = backend
        self.store = store or SnapshotStore(clock)
        self.strategy = strategy or PushStrategy()
        self.data_path = data_path
        self._clock = clock
        self._sleep = sleep

        self.loading = False
        self.error: str | None = None
        self.data_directory_missing: bool | None = None
        self.last_heartbeat: float | None = None
        self.connected = False

        self._first_fetch_done = False
        self._closed = False
        self._refetch: asyncio.Future | None = None
        self._channel: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Callable[[], None]] = []
        self.animation = AnimationSignal(scheduler or LoopScheduler(), on_change=self._notify)

    # ── State for readers ──

    @property
    def animating(self) -> bool:
        return self.animation.active

    @property
    def closed(self) -> bool:
        return self._closed

    def heartbeat_age(self) -> float | None:
        if self.last_heartbeat is None:
            return None
        return max(0.0, self._clock() - self.last_heartbeat)

    def is_stale(self) -> bool:
        age = self.heartbeat_age()
        return age is not None and age > 3 * HEARTBEAT_INTERVAL_S

    def status(self) -> dict:
        return {
            "loading": self.loading,
            "error": self.error,
            "animating": self.animating,
            "lastHeartbeat": self.last_heartbeat,
            "heartbeatAge": self.heartbeat_age(),
            "stale": self.is_stale(),
            "connected": self.connected,
            "dataDirectoryMissing": self.data_directory_missing,
            "version": self.store.version,
            "strategy": "poll" if isinstance(self.strategy, PollingStrategy) else "push",
        }

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` after every state change. Returns an unsubscribe."""
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
                log.exception("Sync listener failed")

    # ── Lifecycle ──

    async def start(self) -> None:
        """Initial full fetch, then begin following backend updates."""
        await self.full_refetch()
        if self._closed:
            return
        if isinstance(self.strategy, PollingStrategy):
            self._channel = asyncio.ensure_future(self._run_polling())
        else:
            self.subscribe_to_push()

    async def close(self) -> None:
        """Release the update channel and timers. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.cancel()
            try:
                await channel
            except asyncio.CancelledError:
                pass
        self.connected = False
        self.animation.cancel()
        self._listeners.clear()
        log.info("Sync controller closed")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._reap)
        return task

    def _reap(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Background refresh failed", exc_info=task.exception())

    # ── Full fetch ──

    async def full_refetch(self) -> None:
        """Replace the snapshot with a complete fetch.

        Callers arriving while a refetch is in flight share it rather than
        starting another.
        """
        if self._closed:
            return
        if self._refetch is None or self._refetch.done():
            self._refetch = asyncio.ensure_future(self._do_full_refetch())
        await asyncio.shield(self._refetch)

    async def _do_full_refetch(self) -> None:
        self.loading = True
        self.error = None
        self._notify()
        try:
            snapshot = await self.backend.fetch_snapshot(self.data_path, force_full=True)
        except BackendError as e:
            if self._closed:
                return
            log.warning("Full refresh failed: %s", e)
            self.error = str(e)
            if self.store.current is None:
                await self._probe_data_directory()
            return
        finally:
            if not self._closed:
                self.loading = False
                self._notify()

        self._install(snapshot)

    async def _catch_up(self) -> None:
        """Full fetch after a push reconnect.

        Runs on the push path, so a failure is only logged: ``loading`` and
        ``error`` stay as they are and the last good snapshot stays up.
        """
        if self._closed:
            return
        if self._refetch is not None and not self._refetch.done():
            await asyncio.shield(self._refetch)
            return
        try:
            snapshot = await self.backend.fetch_snapshot(self.data_path, force_full=True)
        except BackendError as e:
            log.warning("Catch-up refresh after reconnect failed: %s", e)
            return
        self._install(snapshot)

    def _install(self, snapshot) -> None:
        if self._closed:
            log.debug("Discarding refetch result after close")
            return
        self.store.replace(snapshot)
        self.data_directory_missing = False
        if self._first_fetch_done:
            self.animation.trigger()
        else:
            self._first_fetch_done = True
        log.info("Loaded snapshot: %d projects, %d days",
                 len(snapshot.projects), len(snapshot.daily_usage))
        self._notify()

    async def _probe_data_directory(self) -> None:
        try:
            exists = await self.check_data_directory()
        except BackendError as e:
            log.debug("Data directory probe failed: %s", e)
            return
        self.data_directory_missing = not exists

    # ── Deltas ──

    def handle_delta(self, delta: DeltaMessage) -> None:
        """Apply one pushed or polled delta. Runs within a single loop turn."""
        if self._closed:
            return
        self.last_heartbeat = self._clock()

        if delta.full_refresh:
            log.info("Backend requested full refresh")
            self._spawn(self.full_refetch())
            self._notify()
            return

        if not delta.has_changes:
            self._notify()
            return

        current = self.store.current
        if current is None:
            log.debug("Delta arrived before the first snapshot, ignoring")
        elif is_empty(delta):
            log.debug("Delta flagged changes but carried none")
        else:
            self.store.replace(merge(current, delta))
            self.animation.trigger()
            log.debug("Merged delta: %d updated projects", len(delta.updated_projects))
        self._notify()

    def handle_push_payload(self, raw: str) -> None:
        try:
            delta = DeltaMessage.model_validate_json(raw)
        except ValidationError as e:
            log.warning("Dropping malformed push payload: %s", e.errors(include_url=False))
            return
        self.handle_delta(delta)

    # ── Push strategy ──

    def subscribe_to_push(self) -> asyncio.Task:
        """Open the push subscription (once; later calls return the same task)."""
        if self._channel is None or self._channel.done():
            self._channel = asyncio.ensure_future(self._run_push())
        return self._channel

    async def _run_push(self) -> None:
        strategy = self.strategy if isinstance(self.strategy, PushStrategy) else PushStrategy()
        delay = strategy.reconnect_initial_s
        reconnecting = False
        while not self._closed:
            if reconnecting:
                self._spawn(self._catch_up())
            try:
                async for raw in self.backend.subscribe(self.data_path):
                    if not self.connected:
                        self.connected = True
                        delay = strategy.reconnect_initial_s
                    self.handle_push_payload(raw)
                log.warning("Push stream ended")
            except BackendError as e:
                log.warning("Push stream failed: %s", e)
            self.connected = False
            self._notify()
            if self._closed:
                break
            log.info("Reconnecting push stream in %.1fs", delay)
            await self._sleep(delay)
            delay = min(delay * 2, strategy.reconnect_max_s)
            reconnecting = True

    # ── Narrow reads, straight from the backend ──

    async def fetch_projects(self):
        return await self.backend.fetch_projects(self.data_path)

    async def fetch_overall_stats(self):
        return await self.backend.fetch_overall_stats(self.data_path)

    async def fetch_daily_usage(self, start_date: str | None = None, end_date: str | None = None):
        return await self.backend.fetch_daily_usage(self.data_path, start_date, end_date)

    async def check_data_directory(self) -> bool:
        return await self.backend.check_data_directory(self.data_path)

    # ── Polling strategy ──

    async def incremental_refresh(self) -> None:
        """Fetch and apply one delta. Failures are logged only."""
        if self._closed:
            return
        try:
            delta = await self.backend.fetch_delta(self.data_path)
        except BackendError as e:
            log.warning("Incremental refresh failed: %s", e)
            return
        self.handle_delta(delta)

    async def _run_polling(self) -> None:
        interval = self.strategy.interval_s
        while not self._closed:
            await self._sleep(interval)
            await self.incremental_refresh()
