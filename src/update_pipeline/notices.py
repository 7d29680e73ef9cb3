"""Notices — the single "reply to this update" side channel."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from update_pipeline.context import Update


class NoticeKind(str, Enum):
    THROTTLED = "throttled"
    UNREGISTERED = "unregistered"
    BLOCKED = "blocked"
    LOOKUP_FAILED = "lookup_failed"
    FAULT = "fault"


DEFAULT_TEXTS: dict[NoticeKind, str] = {
    NoticeKind.THROTTLED: "Too many requests. Try again in {retry_after} seconds.",
    NoticeKind.UNREGISTERED: (
        "You are not registered yet. Use /register to sign up or /start to begin."
    ),
    NoticeKind.BLOCKED: "Your account is blocked. Please contact support.",
    NoticeKind.LOOKUP_FAILED: "Authorization is temporarily unavailable. Try again later.",
    NoticeKind.FAULT: (
        "Something went wrong while processing your request. "
        "Please try again later or contact support."
    ),
}


@dataclass(frozen=True)
class Notice:
    """A short user-visible message emitted when the chain short-circuits.

    ``retry_after`` is only set for ``THROTTLED`` notices.
    """

    kind: NoticeKind
    text: str
    retry_after: float | None = None

    @staticmethod
    def build(kind: NoticeKind, *, retry_after: float | None = None) -> Notice:
        """Create a notice with the default text for *kind*."""
        seconds = math.ceil(retry_after) if retry_after is not None else 0
        text = DEFAULT_TEXTS[kind].format(retry_after=seconds)
        return Notice(kind=kind, text=text, retry_after=retry_after)


class Notifier(Protocol):
    """Transport-side action that replies to the originating update."""

    async def reply(self, update: Update, notice: Notice) -> None: ...
