"""Time sources for window bookkeeping and context timestamps."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


def utc_now() -> datetime:
    return datetime.now(UTC)


class Clock(Protocol):
    """Anything that tells the current, timezone-aware time.

    The rate limiter reads time only through this protocol, so tests can
    move time forward without sleeping.
    """

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return utc_now()
