"""
Time source abstraction.

Security components compare stored timestamps against "now" instead of
running background sweepers, so every one of them takes a clock that can be
swapped for a manually advanced one.
"""
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can report the current UTC time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
