"""RateLimitStage — throttles identities through a fixed-window limiter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from update_pipeline.logging import get_logger
from update_pipeline.notices import Notice, NoticeKind
from update_pipeline.outcome import Outcome
from update_pipeline.ratelimit import FixedWindowRateLimiter, WindowReaper
from update_pipeline.stages.base import NextFn, Stage

if TYPE_CHECKING:
    from update_pipeline.context import PipelineContext

logger = get_logger(__name__)


class RateLimitStage(Stage):
    """Admits at most ``max_requests`` updates per identity per window.

    A denied update gets one throttling notice carrying the retry-after hint
    and never reaches the inner stages.  The stage owns a
    :class:`WindowReaper` that runs between ``startup`` and ``shutdown``.

    Parameters:
        limiter:        The limiter to consult.
        name:           Unique stage name.
        reap_interval:  Seconds between sweeps.  Defaults to the window size.
    """

    _stage_type = "rate_limit"
    _stage_description = "Limits update rate per identity within a fixed window"

    def __init__(
        self,
        limiter: FixedWindowRateLimiter,
        *,
        name: str = "rate_limit",
        reap_interval: float | None = None,
    ) -> None:
        self._name = name
        self.limiter = limiter
        self.reaper = WindowReaper(limiter, interval=reap_interval)

    @property
    def name(self) -> str:
        return self._name

    def export(self) -> dict[str, Any]:
        data = super().export()
        data["config"] = {
            **self.limiter.export(),
            "reap_interval": self.reaper.interval,
        }
        return data

    async def startup(self) -> None:
        self.reaper.start()

    async def shutdown(self) -> None:
        await self.reaper.stop()

    async def process(self, context: PipelineContext, call_next: NextFn) -> Outcome:
        decision = self.limiter.check(context.identity)

        if not decision.allowed:
            logger.info(
                "update_throttled",
                identity=context.identity,
                retry_after=decision.retry_after,
            )
            await self.notify_best_effort(
                context,
                Notice.build(NoticeKind.THROTTLED, retry_after=decision.retry_after),
            )
            return Outcome.throttled(self.name, decision.retry_after)

        context.metadata[f"{self.name}_remaining"] = decision.remaining
        return await call_next(context)
