"""Tests for RateLimitStage."""

import asyncio

import pytest
from structlog.testing import capture_logs

from update_pipeline import NoticeKind, OutcomeKind, PipelineContext
from update_pipeline.outcome import Outcome
from update_pipeline.stages import RateLimitStage


@pytest.fixture
async def stage(limiter, notifier):
    s = RateLimitStage(limiter, name="rl")
    await s.setup(notifier)
    return s


def make_next(calls):
    async def call_next(ctx):
        calls.append(ctx.identity)
        return Outcome.handled()

    return call_next


async def test_allows_under_limit(stage, alice_update):
    calls = []
    for _ in range(3):
        outcome = await stage.process(PipelineContext(update=alice_update), make_next(calls))
        assert outcome.kind is OutcomeKind.HANDLED
    assert calls == ["alice"] * 3


async def test_remaining_in_metadata(stage, alice_update):
    ctx = PipelineContext(update=alice_update)
    await stage.process(ctx, make_next([]))
    assert ctx.metadata["rl_remaining"] == 2


async def test_throttles_over_limit(stage, notifier, alice_update):
    calls = []
    for _ in range(3):
        await stage.process(PipelineContext(update=alice_update), make_next(calls))

    outcome = await stage.process(PipelineContext(update=alice_update), make_next(calls))

    assert outcome.kind is OutcomeKind.THROTTLED
    assert outcome.stage == "rl"
    assert outcome.retry_after == pytest.approx(60)
    assert len(calls) == 3
    assert notifier.kinds() == [NoticeKind.THROTTLED]
    notice = notifier.sent[0][1]
    assert notice.retry_after == pytest.approx(60)
    assert "60 seconds" in notice.text


async def test_startup_and_shutdown_drive_reaper(stage):
    await stage.startup()
    assert stage.reaper.running
    await stage.shutdown()
    assert not stage.reaper.running


async def test_reaper_sweeps_while_started(limiter, notifier, clock, alice_update):
    stage = RateLimitStage(limiter, reap_interval=0.01)
    await stage.setup(notifier)
    await stage.process(PipelineContext(update=alice_update), make_next([]))

    await stage.startup()
    try:
        clock.advance(61)
        await asyncio.sleep(0.05)
        assert len(limiter) == 0
    finally:
        await stage.shutdown()


def test_export(limiter):
    data = RateLimitStage(limiter, reap_interval=30).export()
    assert data["type"] == "rate_limit"
    assert data["config"]["max_requests"] == 3
    assert data["config"]["window_seconds"] == 60
    assert data["config"]["reap_interval"] == 30


async def test_throttle_survives_failing_notifier(limiter, make_notifier, alice_update):
    notifier = make_notifier(fail=True)
    stage = RateLimitStage(limiter)
    await stage.setup(notifier)
    for _ in range(3):
        await stage.process(PipelineContext(update=alice_update), make_next([]))

    with capture_logs() as logs:
        outcome = await stage.process(PipelineContext(update=alice_update), make_next([]))

    assert outcome.kind is OutcomeKind.THROTTLED
    assert notifier.attempts == 1
    failed = [e for e in logs if e["event"] == "notice_failed"]
    assert failed[0]["log_level"] == "warning"
    assert failed[0]["notice"] == "throttled"
