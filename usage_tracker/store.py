"""Last-known-good usage snapshot, written only by the sync controller."""

import time

from .models import UsageSnapshot


class SnapshotStore:
    def __init__(self, clock=time.time):
        self._clock = clock
        self._snapshot: UsageSnapshot | None = None
        self._version = 0
        self._updated_at: float | None = None

    @property
    def current(self) -> UsageSnapshot | None:
        return self._snapshot

    @property
    def version(self) -> int:
        """Incremented on every replace."""
        return self._version

    @property
    def updated_at(self) -> float | None:
        return self._updated_at

    def replace(self, snapshot: UsageSnapshot) -> bool:
        """Install ``snapshot``. Returns False if it is the object already held."""
        if snapshot is self._snapshot:
            return False
        self._snapshot = snapshot
        self._version += 1
        self._updated_at = self._clock()
        return True
