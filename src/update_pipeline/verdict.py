"""UserVerdict — the auth gate's classification of a caller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from update_pipeline.users import UserRecord


class VerdictKind(str, Enum):
    UNREGISTERED = "unregistered"
    BLOCKED = "blocked"
    ACTIVE = "active"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class UserVerdict:
    """Immutable verdict returned by :meth:`AuthGate.authorize`.

    Attributes:
        kind:   Which of the four classes the caller falls into.
        user:   The resolved record for ``ACTIVE`` and ``BLOCKED`` verdicts.
        reason: Why the lookup failed (``LOOKUP_FAILED`` only).
    """

    kind: VerdictKind
    user: UserRecord | None = None
    reason: str = ""

    @property
    def is_active(self) -> bool:
        return self.kind is VerdictKind.ACTIVE

    # ── Factory helpers ──────────────────────────────────────

    @staticmethod
    def unregistered() -> UserVerdict:
        return UserVerdict(kind=VerdictKind.UNREGISTERED)

    @staticmethod
    def blocked(user: UserRecord) -> UserVerdict:
        return UserVerdict(kind=VerdictKind.BLOCKED, user=user)

    @staticmethod
    def active(user: UserRecord) -> UserVerdict:
        return UserVerdict(kind=VerdictKind.ACTIVE, user=user)

    @staticmethod
    def lookup_failed(reason: str) -> UserVerdict:
        return UserVerdict(kind=VerdictKind.LOOKUP_FAILED, reason=reason)
