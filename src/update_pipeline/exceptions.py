"""Custom exceptions for the update_pipeline package."""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""


class InvalidUpdateError(PipelineError):
    """Raised when an inbound update cannot be turned into a pipeline input."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid update: {detail}")


class PipelineConfigError(PipelineError):
    """Raised when a pipeline component is misconfigured."""

    def __init__(self, component: str, message: str) -> None:
        self.component = component
        super().__init__(f"Component '{component}' misconfigured: {message}")


class UserLookupError(PipelineError):
    """Raised by a user lookup when the backend answers with an unexpected error."""

    def __init__(self, identity: str, detail: str = "") -> None:
        self.identity = identity
        msg = f"User lookup failed for '{identity}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
