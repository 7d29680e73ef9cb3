"""Tests for ErrorContainmentStage."""

import asyncio

import pytest
from structlog.testing import capture_logs

from update_pipeline import NoticeKind, OutcomeKind, PipelineContext
from update_pipeline.outcome import Outcome
from update_pipeline.stages import ErrorContainmentStage


@pytest.fixture
async def stage(notifier):
    s = ErrorContainmentStage()
    await s.setup(notifier)
    return s


async def test_passes_outcome_through(stage, notifier, alice_update):
    async def call_next(ctx):
        return Outcome.handled()

    outcome = await stage.process(PipelineContext(update=alice_update), call_next)
    assert outcome.kind is OutcomeKind.HANDLED
    assert notifier.sent == []


async def test_contains_fault(stage, notifier, alice_update):
    error = ValueError("bad balance")

    async def call_next(ctx):
        raise error

    with capture_logs() as logs:
        outcome = await stage.process(PipelineContext(update=alice_update), call_next)

    assert outcome.kind is OutcomeKind.FAULTED
    assert outcome.error is error
    assert outcome.stage == "error_containment"
    assert notifier.kinds() == [NoticeKind.FAULT]

    assert len(logs) == 1
    entry = logs[0]
    assert entry["event"] == "update_handling_failed"
    assert entry["log_level"] == "error"
    assert entry["identity"] == "alice"
    assert entry["error_type"] == "ValueError"
    assert entry["update"]["identity"] == "alice"
    assert entry["exc_info"] is True


async def test_failed_fault_notice_is_swallowed(make_notifier, alice_update):
    notifier = make_notifier(fail=True)
    stage = ErrorContainmentStage()
    await stage.setup(notifier)

    async def call_next(ctx):
        raise RuntimeError("handler crashed")

    with capture_logs() as logs:
        outcome = await stage.process(PipelineContext(update=alice_update), call_next)

    assert outcome.kind is OutcomeKind.FAULTED
    assert notifier.attempts == 1
    assert [e["event"] for e in logs] == ["update_handling_failed", "fault_notice_failed"]


async def test_cancellation_is_not_contained(stage, alice_update):
    async def call_next(ctx):
        raise asyncio.CancelledError

    with pytest.raises(asyncio.CancelledError):
        await stage.process(PipelineContext(update=alice_update), call_next)


def test_export():
    data = ErrorContainmentStage(name="outer").export()
    assert data["name"] == "outer"
    assert data["type"] == "error_containment"
