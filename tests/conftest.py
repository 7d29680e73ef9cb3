"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from update_pipeline import Dispatcher, Update, UserRecord
from update_pipeline.gate import AuthGate
from update_pipeline.ratelimit import FixedWindowRateLimiter
from update_pipeline.stages import AuthGateStage, ErrorContainmentStage, RateLimitStage


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self._now = start

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._now, tz=UTC)

    def at(self, offset: float) -> datetime:
        return datetime.fromtimestamp(self._now, tz=UTC) + timedelta(seconds=offset)

    def advance(self, seconds: float) -> None:
        self._now += seconds


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.attempts = 0
        self.fail = fail

    async def reply(self, update, notice):
        self.attempts += 1
        if self.fail:
            raise ConnectionError("transport unreachable")
        self.sent.append((update.identity, notice))

    def kinds(self):
        return [notice.kind for _, notice in self.sent]


class FakeLookup:
    def __init__(self, users=None, error=None):
        self.users = users or {}
        self.error = error
        self.calls = []

    async def find_user_by_identity(self, identity):
        self.calls.append(identity)
        if self.error is not None:
            raise self.error
        return self.users.get(identity)


def make_user(identity: str, *, active: bool = True) -> UserRecord:
    return UserRecord(id=f"user-{identity}", telegramId=identity, firstName="Test", isActive=active)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def lookup():
    return FakeLookup(
        users={
            "alice": make_user("alice"),
            "bob": make_user("bob"),
            "mallory": make_user("mallory", active=False),
        }
    )


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(window_seconds=60, max_requests=3, clock=clock)


@pytest.fixture
def handled():
    return []


@pytest.fixture
async def dispatcher(notifier, lookup, limiter, handled):
    async def handler(context):
        handled.append((context.identity, context.user))

    d = Dispatcher(notifier, handler)
    await d.add_stage(ErrorContainmentStage())
    await d.add_stage(RateLimitStage(limiter))
    await d.add_stage(AuthGateStage(AuthGate(lookup, timeout=1.0)))
    return d


@pytest.fixture
def alice_update():
    return Update(identity="alice", payload={"text": "/balance"})


@pytest.fixture
def bob_update():
    return Update(identity="bob", payload={"text": "/profile"})


@pytest.fixture(name="make_user")
def make_user_fixture():
    return make_user


@pytest.fixture
def make_lookup():
    return FakeLookup


@pytest.fixture
def make_notifier():
    return RecordingNotifier
