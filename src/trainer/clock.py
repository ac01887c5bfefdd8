"""
Time sources for the trainer.

The core never reads the wall clock directly. Hosts either use SystemClock
(wall time) or TickClock, which only moves when the host calls tick().
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as second-precision ISO-8601 UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    return moment.strftime(TIMESTAMP_FORMAT)


def epoch_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp() * 1000)


class Clock(Protocol):
    """Protocol for time sources."""

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...

    def tick(self, seconds: float) -> None:
        """Host-driven periodic tick."""
        ...


class SystemClock:
    """Wall-clock time. tick() is accepted and ignored."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def tick(self, seconds: float) -> None:
        return None


class TickClock:
    """
    Deterministic clock advanced only by the host.

    Used for replays and tests so durations and timestamps are reproducible.
    """

    DEFAULT_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)

    def __init__(self, start: datetime | None = None):
        start = start or self.DEFAULT_EPOCH
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def tick(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now = self._now + timedelta(seconds=seconds)
