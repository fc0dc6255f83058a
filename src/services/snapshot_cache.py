from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Snapshot(Generic[T]):
    value: T
    loaded_at: datetime


class SnapshotCache(Generic[T]):
    """Time-boxed cache holding one whole snapshot.

    Readers see either the old or the new snapshot, never a partial one.
    Refresh is single-flight: concurrent misses wait on one loader call.
    Loader exceptions propagate and leave the cache empty.
    """

    def __init__(self, *, ttl: timedelta, clock: Clock = utc_now) -> None:
        if ttl < timedelta(0):
            raise ValueError("ttl must be >= 0")
        self._ttl = ttl
        self._clock = clock
        self._snapshot: _Snapshot[T] | None = None
        self._generation = 0
        self._refresh_lock = threading.Lock()

    @property
    def loaded_at(self) -> datetime | None:
        snapshot = self._snapshot
        return None if snapshot is None else snapshot.loaded_at

    def get_or_load(self, loader: Callable[[], T]) -> T:
        snapshot = self._fresh_snapshot()
        if snapshot is not None:
            return snapshot.value

        with self._refresh_lock:
            # Another thread may have refreshed while we waited.
            snapshot = self._fresh_snapshot()
            if snapshot is not None:
                return snapshot.value

            generation = self._generation
            value = loader()
            if generation == self._generation:
                self._snapshot = _Snapshot(value=value, loaded_at=self._clock())
            return value

    def invalidate(self) -> None:
        self._generation += 1
        self._snapshot = None

    def _fresh_snapshot(self) -> _Snapshot[T] | None:
        snapshot = self._snapshot
        if snapshot is None:
            return None
        if self._clock() - snapshot.loaded_at >= self._ttl:
            return None
        return snapshot


__all__ = ["Clock", "SnapshotCache", "utc_now"]
