"""Built-in pipeline stages."""

from update_pipeline.outcome import Outcome
from update_pipeline.stages.auth import AuthGateStage
from update_pipeline.stages.base import NextFn, Stage
from update_pipeline.stages.errors import ErrorContainmentStage
from update_pipeline.stages.rate_limit import RateLimitStage

__all__ = [
    "AuthGateStage",
    "ErrorContainmentStage",
    "NextFn",
    "Outcome",
    "RateLimitStage",
    "Stage",
]
