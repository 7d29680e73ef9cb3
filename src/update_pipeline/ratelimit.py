"""Fixed-window, per-identity request rate limiting.

The limiter owns its table of :class:`RateWindow` records.  Access is
synchronized per entry through lock striping: every identity maps onto one
of a fixed number of locks, so unrelated identities rarely contend and no
single lock serializes the whole table.

Known limitation: a fixed window admits a burst of up to ``2 * max_requests``
around a window boundary (the tail of one window plus the head of the next).
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from update_pipeline._internal.clock import Clock, SystemClock
from update_pipeline.exceptions import PipelineConfigError
from update_pipeline.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateWindow:
    """Request count of one identity within its current window."""

    count: int
    reset_at: datetime

    def expired(self, now: datetime) -> bool:
        return now >= self.reset_at


@dataclass(frozen=True)
class RateDecision:
    """Immutable answer of :meth:`FixedWindowRateLimiter.check`.

    Attributes:
        allowed:     ``True`` if the request fits in the current window.
        remaining:   Requests still admitted in the window after this one.
        retry_after: Seconds until the window resets (denials only).
    """

    allowed: bool
    remaining: int = 0
    retry_after: float = 0.0

    @staticmethod
    def allow(remaining: int) -> RateDecision:
        return RateDecision(allowed=True, remaining=remaining)

    @staticmethod
    def deny(retry_after: float) -> RateDecision:
        return RateDecision(allowed=False, remaining=0, retry_after=retry_after)


class FixedWindowRateLimiter:
    """Counts requests per identity in fixed windows of ``window_seconds``.

    Parameters:
        window_seconds: Length of a window in seconds.
        max_requests:   Maximum admitted requests per window.
        clock:          Injectable clock for testing.
        stripes:        Number of locks the table is striped over.
    """

    def __init__(
        self,
        *,
        window_seconds: float = 60,
        max_requests: int = 20,
        clock: Clock | None = None,
        stripes: int = 64,
    ) -> None:
        if window_seconds <= 0:
            raise PipelineConfigError("rate_limiter", "window_seconds must be positive")
        if max_requests <= 0:
            raise PipelineConfigError("rate_limiter", "max_requests must be positive")
        if stripes <= 0:
            raise PipelineConfigError("rate_limiter", "stripes must be positive")

        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock or SystemClock()
        self._windows: dict[str, RateWindow] = {}
        self._locks = [threading.Lock() for _ in range(stripes)]

    def _lock_for(self, identity: str) -> threading.Lock:
        return self._locks[hash(identity) % len(self._locks)]

    # ── evaluation ───────────────────────────────────────────

    def check(self, identity: str, now: datetime | None = None) -> RateDecision:
        """Record one request for *identity* and decide whether it is admitted.

        Denied requests neither increment the count nor move the window.
        """
        if now is None:
            now = self._clock.now()

        with self._lock_for(identity):
            window = self._windows.get(identity)

            if window is None or window.expired(now):
                self._windows[identity] = RateWindow(count=1, reset_at=now + self._window)
                return RateDecision.allow(self.max_requests - 1)

            if window.count < self.max_requests:
                window.count += 1
                return RateDecision.allow(self.max_requests - window.count)

            return RateDecision.deny((window.reset_at - now).total_seconds())

    # ── maintenance ──────────────────────────────────────────

    def sweep(self, now: datetime | None = None) -> int:
        """Delete every expired window and return how many were removed."""
        if now is None:
            now = self._clock.now()

        removed = 0
        for identity in self._snapshot_identities():
            with self._lock_for(identity):
                window = self._windows.get(identity)
                if window is not None and window.expired(now):
                    del self._windows[identity]
                    removed += 1
        return removed

    def _snapshot_identities(self) -> list[str]:
        # Every insert happens under one stripe; holding all of them freezes the key set.
        with contextlib.ExitStack() as stack:
            for lock in self._locks:
                stack.enter_context(lock)
            return list(self._windows)

    # ── introspection ────────────────────────────────────────

    def peek(self, identity: str) -> RateWindow | None:
        """Return a copy of the stored window for *identity*, if any."""
        with self._lock_for(identity):
            window = self._windows.get(identity)
            return replace(window) if window is not None else None

    def __len__(self) -> int:
        return len(self._windows)

    def export(self) -> dict[str, Any]:
        return {
            "algorithm": "fixed_window",
            "window_seconds": self.window_seconds,
            "max_requests": self.max_requests,
        }


class WindowReaper:
    """Background task that periodically sweeps expired windows.

    Nothing runs until :meth:`start` is called; :meth:`stop` cancels the task
    and waits for it to finish, so tests never leak background work.

    Parameters:
        limiter:  The limiter whose table is swept.
        interval: Seconds between sweeps.  Defaults to the limiter's window.
    """

    def __init__(
        self,
        limiter: FixedWindowRateLimiter,
        *,
        interval: float | None = None,
    ) -> None:
        self._limiter = limiter
        self.interval = interval if interval is not None else limiter.window_seconds
        if self.interval <= 0:
            raise PipelineConfigError("window_reaper", "interval must be positive")
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop.  Idempotent."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="rate-limit-reaper")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it.  Idempotent."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                removed = self._limiter.sweep()
            except Exception:
                logger.exception("rate_limit_sweep_failed")
                continue
            if removed:
                logger.debug(
                    "rate_limit_swept",
                    removed=removed,
                    tracked=len(self._limiter),
                )

    async def __aenter__(self) -> WindowReaper:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
