"""Outcome — how a single dispatch ended."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from update_pipeline.verdict import UserVerdict, VerdictKind


class OutcomeKind(str, Enum):
    HANDLED = "handled"
    THROTTLED = "throttled"
    UNREGISTERED = "unregistered"
    BLOCKED = "blocked"
    LOOKUP_FAILED = "lookup_failed"
    FAULTED = "faulted"


_VERDICT_OUTCOMES = {
    VerdictKind.UNREGISTERED: OutcomeKind.UNREGISTERED,
    VerdictKind.BLOCKED: OutcomeKind.BLOCKED,
    VerdictKind.LOOKUP_FAILED: OutcomeKind.LOOKUP_FAILED,
}


@dataclass(frozen=True)
class Outcome:
    """Immutable result returned by every stage and by ``Dispatcher.dispatch``.

    Attributes:
        kind:        How the invocation ended.
        stage:       Name of the stage that produced the outcome (empty when
                     the business handler ran to completion).
        retry_after: Seconds until the caller may retry (throttling only).
        error:       The contained exception (``FAULTED`` only).
        metadata:    Arbitrary extra data the stage wants to surface.
    """

    kind: OutcomeKind
    stage: str = ""
    retry_after: float | None = None
    error: BaseException | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def short_circuited(self) -> bool:
        """``True`` when the business handler did not run to completion."""
        return self.kind is not OutcomeKind.HANDLED

    # ── Factory helpers ──────────────────────────────────────

    @staticmethod
    def handled(**meta: Any) -> Outcome:
        return Outcome(kind=OutcomeKind.HANDLED, metadata=meta)

    @staticmethod
    def throttled(stage: str, retry_after: float, **meta: Any) -> Outcome:
        return Outcome(
            kind=OutcomeKind.THROTTLED,
            stage=stage,
            retry_after=retry_after,
            metadata=meta,
        )

    @staticmethod
    def rejected(stage: str, verdict: UserVerdict, **meta: Any) -> Outcome:
        if verdict.is_active:
            raise ValueError("An active verdict does not reject the update")
        return Outcome(kind=_VERDICT_OUTCOMES[verdict.kind], stage=stage, metadata=meta)

    @staticmethod
    def faulted(stage: str, error: BaseException, **meta: Any) -> Outcome:
        return Outcome(kind=OutcomeKind.FAULTED, stage=stage, error=error, metadata=meta)
