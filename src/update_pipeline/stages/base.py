"""Stage ABC — the single abstraction every link of the chain implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, ClassVar

from update_pipeline.logging import get_logger

if TYPE_CHECKING:
    from update_pipeline.context import PipelineContext
    from update_pipeline.notices import Notice, Notifier
    from update_pipeline.outcome import Outcome

logger = get_logger(__name__)

NextFn = Callable[["PipelineContext"], Awaitable["Outcome"]]


class Stage(ABC):
    """Base class for every pipeline stage.

    Subclasses **must** define a ``name`` property and implement
    :meth:`process`.  A stage either calls ``call_next(context)`` and returns
    (or wraps) its outcome, or short-circuits by returning an outcome of its
    own without calling it.

    Stages may:
    * Read the update and identity from the context.
    * **Write** to ``context.user`` / ``context.metadata`` for downstream stages.
    * Reply to the update through :meth:`notify` (notifier injected by the
      dispatcher).

    Class Variables:
        _stage_type: Type identifier for introspection (e.g., "rate_limit").
        _stage_description: Human-readable description of the stage.
    """

    _stage_type: ClassVar[str] = "base"
    _stage_description: ClassVar[str] = ""

    notifier: Notifier

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this stage instance."""
        ...

    @abstractmethod
    async def process(self, context: PipelineContext, call_next: NextFn) -> Outcome:
        """Handle *context*, delegating inward through *call_next*."""
        ...

    async def setup(self, notifier: Notifier) -> None:
        """Called once when the stage is registered with the dispatcher."""
        self.notifier = notifier

    async def startup(self) -> None:
        """Start background work owned by the stage.  No-op by default."""

    async def shutdown(self) -> None:
        """Stop background work owned by the stage.  No-op by default."""

    async def notify(self, context: PipelineContext, notice: Notice) -> None:
        await self.notifier.reply(context.update, notice)

    async def notify_best_effort(self, context: PipelineContext, notice: Notice) -> bool:
        """Send a short-circuit *notice* once; a failing transport is logged, not raised.

        Returns ``True`` if the notice was delivered.
        """
        try:
            await self.notify(context, notice)
        except Exception as e:
            logger.warning(
                "notice_failed",
                stage=self.name,
                identity=context.identity,
                notice=notice.kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    # ── introspection ─────────────────────────────────────────

    def export(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of this stage.

        Subclasses should call ``super().export()`` and populate the
        ``"config"`` key in the returned dict.
        """
        return {
            "name": self.name,
            "type": self._stage_type,
            "description": self._stage_description,
            "config": {},
        }
