from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


@dataclass
class FakeClock:
    """Manually advanced clock for TTL and effective-date tests."""

    now: datetime = field(default_factory=lambda: datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta
