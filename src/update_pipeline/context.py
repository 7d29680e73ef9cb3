"""Update and PipelineContext — the data objects that flow through the chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from update_pipeline._internal.clock import utc_now
from update_pipeline.exceptions import InvalidUpdateError

if TYPE_CHECKING:
    from update_pipeline.users import UserRecord


@dataclass(frozen=True)
class Update:
    """An inbound event delivered by the messaging transport.

    Attributes:
        identity:    Stable per-user key (e.g. a Telegram user id rendered as
                     a string).  Used for rate limiting and user lookups.
        payload:     Opaque transport object handed to the business handler.
        kind:        Short label of the event type (``"message"``,
                     ``"callback_query"``, ...).  Only used for logging.
        update_id:   Transport-assigned id, if any.
        received_at: When the update entered the pipeline.  Auto-set to
                     *now* (UTC) if not provided.
    """

    identity: str
    payload: Any = None
    kind: str = "message"
    update_id: int | None = None
    received_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not isinstance(self.identity, str) or not self.identity.strip():
            raise InvalidUpdateError("identity must be a non-empty string")

    def describe(self) -> dict[str, Any]:
        """Return a JSON-friendly summary of the update for log entries."""
        return {
            "identity": self.identity,
            "kind": self.kind,
            "update_id": self.update_id,
            "received_at": self.received_at.isoformat(),
            "payload": repr(self.payload),
        }


@dataclass
class PipelineContext:
    """Per-invocation state owned by a single ``dispatch`` call.

    Attributes:
        update:     The inbound update being processed.
        user:       Resolved user record.  Populated by the auth gate stage
                    before the business handler runs.
        metadata:   Shared scratchpad for inter-stage communication.
        started_at: When the invocation started.
    """

    update: Update
    user: UserRecord | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utc_now)

    @property
    def identity(self) -> str:
        return self.update.identity
