"""Shared fakes: a manual clock, an in-memory backend, a recording window."""

from __future__ import annotations

import asyncio

import pytest

from usage_tracker.backend import BackendError
from usage_tracker.models import (
    DailyStat, DeltaMessage, OverallStats, ProjectStat, TodayStats, UsageSnapshot,
)


class _Handle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """``call_later`` against a clock that only moves on ``advance``."""

    def __init__(self):
        self.now = 0.0
        self._handles: list[_Handle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay, callback):
        h = _Handle(self.now + delay, callback)
        self._handles.append(h)
        return h

    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            h = min(due, key=lambda x: x.when)
            self._handles.remove(h)
            self.now = h.when
            h.callback()
        self._handles = [h for h in self._handles if not h.cancelled]
        self.now = target


class FakeBackend:
    def __init__(self, snapshot: UsageSnapshot | None = None):
        self.snapshot = snapshot
        self.fail: Exception | None = None
        self.data_dir_exists = True
        self.deltas: list = []
        self.daily: list[DailyStat] = []
        self.gate: asyncio.Event | None = None
        self.fetch_calls = 0
        self.delta_calls = 0
        self.subscriptions = 0
        self.releases = 0
        self.closed = False
        self._pushes: asyncio.Queue | None = None

    @property
    def pushes(self) -> asyncio.Queue:
        if self._pushes is None:
            self._pushes = asyncio.Queue()
        return self._pushes

    def push(self, item) -> None:
        """Queue a delta, a raw payload string, an exception, or None (end of stream)."""
        if isinstance(item, DeltaMessage):
            item = item.model_dump_json(by_alias=True)
        self.pushes.put_nowait(item)

    async def fetch_snapshot(self, data_path=None, force_full=False):
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        return self.snapshot

    async def fetch_delta(self, data_path=None):
        self.delta_calls += 1
        if self.fail is not None:
            raise self.fail
        return self.deltas.pop(0) if self.deltas else DeltaMessage()

    async def fetch_projects(self, data_path=None):
        return list(self.snapshot.projects.values())

    async def fetch_overall_stats(self, data_path=None):
        return self.snapshot.overall_stats

    async def fetch_daily_usage(self, data_path=None, start_date=None, end_date=None):
        if self.fail is not None:
            raise self.fail
        return [d for d in self.daily
                if (start_date is None or d.date >= start_date)
                and (end_date is None or d.date <= end_date)]

    async def check_data_directory(self, data_path=None):
        return self.data_dir_exists

    async def subscribe(self, data_path=None):
        self.subscriptions += 1
        try:
            while True:
                item = await self.pushes.get()
                if item is None:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.releases += 1

    async def aclose(self):
        self.closed = True


class RecordingWindow:
    def __init__(self, fail: bool = False):
        self.calls: list[tuple] = []
        self.fail = fail
        self.on_top = False
        self.maximized = False

    async def _record(self, *call):
        self.calls.append(call)
        if self.fail:
            raise RuntimeError("not running inside a host shell")

    async def resize(self, width, height):
        await self._record("resize", width, height)

    async def set_resizable(self, resizable):
        await self._record("set_resizable", resizable)

    async def center(self):
        await self._record("center")

    async def minimize(self):
        await self._record("minimize")

    async def toggle_maximize(self):
        await self._record("toggle_maximize")
        self.maximized = not self.maximized

    async def close(self):
        await self._record("close")

    async def set_always_on_top(self, on_top):
        await self._record("set_always_on_top", on_top)
        self.on_top = on_top

    async def is_always_on_top(self):
        await self._record("is_always_on_top")
        return self.on_top

    async def is_maximized(self):
        await self._record("is_maximized")
        return self.maximized


def make_project(path: str, cost: float = 1.0, tokens: int = 1000, **kw) -> ProjectStat:
    return ProjectStat(
        project_path=path,
        display_name=kw.pop("display_name", path.rsplit("/", 1)[-1]),
        total_input_tokens=tokens,
        total_cost_usd=cost,
        message_count=kw.pop("messages", 10),
        session_count=kw.pop("sessions", 1),
        **kw,
    )


def make_snapshot(total_cost: float = 10.0, projects=None, days=None) -> UsageSnapshot:
    if projects is None:
        projects = [make_project("/work/alpha", 6.0), make_project("/work/beta", 4.0)]
    if days is None:
        days = [DailyStat(date="2026-10-16", cost_usd=3.0), DailyStat(date="2026-10-17", cost_usd=7.0)]
    return UsageSnapshot(
        projects=projects,
        daily_usage=days,
        overall_stats=OverallStats(
            total_cost_usd=total_cost,
            project_count=len(projects),
            today_stats=TodayStats(cost_usd=1.25, total_tokens=4200),
        ),
    )


async def settle(rounds: int = 10) -> None:
    """Let queued tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def backend_error():
    return BackendError("connection refused")
