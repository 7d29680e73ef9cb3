"""AuthGateStage — lets only active users through to the business handler."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from update_pipeline.logging import get_logger
from update_pipeline.notices import Notice, NoticeKind
from update_pipeline.outcome import Outcome
from update_pipeline.stages.base import NextFn, Stage
from update_pipeline.verdict import VerdictKind

if TYPE_CHECKING:
    from update_pipeline.context import PipelineContext
    from update_pipeline.gate import AuthGate

logger = get_logger(__name__)

_VERDICT_NOTICES = {
    VerdictKind.UNREGISTERED: NoticeKind.UNREGISTERED,
    VerdictKind.BLOCKED: NoticeKind.BLOCKED,
    VerdictKind.LOOKUP_FAILED: NoticeKind.LOOKUP_FAILED,
}


class AuthGateStage(Stage):
    """Consults an :class:`AuthGate` and short-circuits on any non-active verdict.

    On ``ACTIVE`` the resolved user is written to ``context.user`` and the
    chain continues.  Otherwise one verdict-specific notice is sent and the
    inner stages never run.
    """

    _stage_type = "auth_gate"
    _stage_description = "Admits only registered, active users"

    def __init__(self, gate: AuthGate, *, name: str = "auth_gate") -> None:
        self._name = name
        self.gate = gate

    @property
    def name(self) -> str:
        return self._name

    def export(self) -> dict[str, Any]:
        data = super().export()
        data["config"] = self.gate.export()
        return data

    async def process(self, context: PipelineContext, call_next: NextFn) -> Outcome:
        verdict = await self.gate.authorize(context.identity)

        if verdict.is_active:
            context.user = verdict.user
            return await call_next(context)

        logger.info(
            "update_rejected",
            identity=context.identity,
            verdict=verdict.kind.value,
        )
        await self.notify_best_effort(context, Notice.build(_VERDICT_NOTICES[verdict.kind]))
        return Outcome.rejected(self.name, verdict)
