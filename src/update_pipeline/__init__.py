"""update_pipeline — a concurrent middleware chain for chat-bot updates.

Every update runs through an ordered chain of stages: error containment,
per-identity rate limiting, then an authorization gate.  The first stage
that short-circuits replies once and stops the chain; only active users
reach the business handler.
"""

from update_pipeline.config import PipelineSettings
from update_pipeline.context import PipelineContext, Update
from update_pipeline.dispatcher import Dispatcher, build_pipeline
from update_pipeline.exceptions import (
    InvalidUpdateError,
    PipelineConfigError,
    PipelineError,
    UserLookupError,
)
from update_pipeline.gate import AuthGate
from update_pipeline.notices import Notice, NoticeKind, Notifier
from update_pipeline.outcome import Outcome, OutcomeKind
from update_pipeline.ratelimit import FixedWindowRateLimiter, RateDecision, WindowReaper
from update_pipeline.users import HttpUserLookup, UserLookup, UserRecord
from update_pipeline.verdict import UserVerdict, VerdictKind

__all__ = [
    "AuthGate",
    "Dispatcher",
    "FixedWindowRateLimiter",
    "HttpUserLookup",
    "InvalidUpdateError",
    "Notice",
    "NoticeKind",
    "Notifier",
    "Outcome",
    "OutcomeKind",
    "PipelineConfigError",
    "PipelineContext",
    "PipelineError",
    "PipelineSettings",
    "RateDecision",
    "Update",
    "UserLookup",
    "UserLookupError",
    "UserRecord",
    "UserVerdict",
    "VerdictKind",
    "WindowReaper",
    "build_pipeline",
]
