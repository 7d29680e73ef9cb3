"""Dispatcher — runs every inbound update through the ordered stage chain."""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from update_pipeline._internal.clock import Clock
from update_pipeline.context import PipelineContext
from update_pipeline.exceptions import PipelineConfigError
from update_pipeline.gate import AuthGate
from update_pipeline.logging import get_logger
from update_pipeline.outcome import Outcome
from update_pipeline.ratelimit import FixedWindowRateLimiter
from update_pipeline.stages import AuthGateStage, ErrorContainmentStage, RateLimitStage

if TYPE_CHECKING:
    from update_pipeline.config import PipelineSettings
    from update_pipeline.context import Update
    from update_pipeline.notices import Notifier
    from update_pipeline.stages.base import Stage
    from update_pipeline.users import UserLookup

logger = get_logger(__name__)

# The business handler may be sync or async.
Handler = Callable[[PipelineContext], Any]


class Dispatcher:
    """Holds an ordered chain of stages and runs updates through it.

    Stages wrap each other in **registration order**: the first stage added
    is the outermost one.  The business handler sits at the centre of the
    chain and only runs when every stage calls inward.

    Each :meth:`dispatch` builds a fresh :class:`PipelineContext`; nothing
    but the stages themselves is shared between invocations.

    Parameters:
        notifier: Reply channel injected into every stage.
        handler:  Default business handler.  May be overridden per dispatch.
    """

    def __init__(self, notifier: Notifier, handler: Handler | None = None) -> None:
        self._notifier = notifier
        self._handler = handler
        self._stages: list[Stage] = []
        self._started = False

    # ── registration ─────────────────────────────────────────

    async def add_stage(self, stage: Stage) -> None:
        """Append *stage* as the innermost stage and inject the notifier."""
        await stage.setup(self._notifier)
        self._stages.append(stage)
        if self._started:
            await stage.startup()

    async def replace_stage(self, name: str, stage: Stage) -> Stage:
        """Swap the stage called *name* for *stage*, keeping its position.

        Returns the stage that was replaced.
        """
        for index, current in enumerate(self._stages):
            if current.name == name:
                break
        else:
            raise PipelineConfigError("dispatcher", f"no stage named '{name}'")

        await stage.setup(self._notifier)
        if self._started:
            await current.shutdown()
            await stage.startup()
        self._stages[index] = stage
        return current

    # ── lifecycle ────────────────────────────────────────────

    async def start(self) -> None:
        """Start background work of every stage (e.g. the rate-limit reaper)."""
        if self._started:
            return
        for stage in self._stages:
            await stage.startup()
        self._started = True

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        for stage in reversed(self._stages):
            await stage.shutdown()

    async def __aenter__(self) -> Dispatcher:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ── evaluation ───────────────────────────────────────────

    async def dispatch(self, update: Update, handler: Handler | None = None) -> Outcome:
        """Run *update* through the chain and return how it ended.

        *handler* replaces the default business handler for this call only.
        """
        terminal = handler or self._handler
        if terminal is None:
            raise PipelineConfigError("dispatcher", "no business handler configured")

        context = PipelineContext(update=update)
        stages = tuple(self._stages)
        started = time.perf_counter()

        outcome = await self._run(stages, 0, terminal, context)

        logger.debug(
            "update_dispatched",
            identity=update.identity,
            outcome=outcome.kind.value,
            stage=outcome.stage,
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        return outcome

    async def _run(
        self,
        stages: tuple[Stage, ...],
        index: int,
        terminal: Handler,
        context: PipelineContext,
    ) -> Outcome:
        if index == len(stages):
            result = terminal(context)
            if inspect.isawaitable(result):
                await result
            return Outcome.handled()

        call_next = functools.partial(self._run, stages, index + 1, terminal)
        return await stages[index].process(context, call_next)

    # ── introspection ────────────────────────────────────────

    def get_stage(self, name: str) -> Stage | None:
        """Look up a registered stage by its ``name``."""
        for stage in self._stages:
            if stage.name == name:
                return stage
        return None

    def list_stages(self) -> list[str]:
        """Return the names of all registered stages, outermost first."""
        return [s.name for s in self._stages]

    def export(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of the chain."""
        stages = [s.export() for s in self._stages]
        return {
            "stages": stages,
            "stage_count": len(stages),
            "has_default_handler": self._handler is not None,
        }

    @property
    def started(self) -> bool:
        return self._started


async def build_pipeline(
    settings: PipelineSettings,
    *,
    lookup: UserLookup,
    notifier: Notifier,
    handler: Handler | None = None,
    clock: Clock | None = None,
) -> Dispatcher:
    """Compose the canonical chain: error containment, rate limit, auth gate.

    The returned dispatcher is not started; use ``async with`` or
    :meth:`Dispatcher.start` to run the rate-limit reaper.
    """
    limiter = FixedWindowRateLimiter(
        window_seconds=settings.window_seconds,
        max_requests=settings.max_requests,
        clock=clock,
    )
    gate = AuthGate(lookup, timeout=settings.lookup_timeout)

    dispatcher = Dispatcher(notifier, handler)
    await dispatcher.add_stage(ErrorContainmentStage())
    await dispatcher.add_stage(RateLimitStage(limiter))
    await dispatcher.add_stage(AuthGateStage(gate))
    return dispatcher
