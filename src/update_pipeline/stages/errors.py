"""ErrorContainmentStage — the outermost stage of every chain."""

from __future__ import annotations

from typing import TYPE_CHECKING

from update_pipeline.logging import get_logger
from update_pipeline.notices import Notice, NoticeKind
from update_pipeline.outcome import Outcome
from update_pipeline.stages.base import NextFn, Stage

if TYPE_CHECKING:
    from update_pipeline.context import PipelineContext

logger = get_logger(__name__)


class ErrorContainmentStage(Stage):
    """Turns any fault raised further down the chain into a logged outcome.

    The fault is logged once with the identity and the update, then a single
    apology notice is attempted.  If that reply fails too, the failure is
    logged and dropped.  Faults are never retried.

    ``asyncio.CancelledError`` is not an ``Exception`` and passes through.
    """

    _stage_type = "error_containment"
    _stage_description = "Contains faults raised by downstream stages"

    def __init__(self, *, name: str = "error_containment") -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def process(self, context: PipelineContext, call_next: NextFn) -> Outcome:
        try:
            return await call_next(context)
        except Exception as e:
            logger.exception(
                "update_handling_failed",
                identity=context.identity,
                update=context.update.describe(),
                error_type=type(e).__name__,
            )
            await self._send_fault_notice(context)
            return Outcome.faulted(self.name, e)

    async def _send_fault_notice(self, context: PipelineContext) -> None:
        try:
            await self.notify(context, Notice.build(NoticeKind.FAULT))
        except Exception as e:
            logger.error(
                "fault_notice_failed",
                identity=context.identity,
                error=str(e),
                error_type=type(e).__name__,
            )
