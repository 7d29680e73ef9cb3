"""AuthGate — classifies a caller as unregistered, blocked, or active."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from update_pipeline.exceptions import PipelineConfigError
from update_pipeline.logging import get_logger
from update_pipeline.verdict import UserVerdict

if TYPE_CHECKING:
    from update_pipeline.users import UserLookup

logger = get_logger(__name__)


class AuthGate:
    """Wraps a :class:`UserLookup` with timeout and fail-closed semantics.

    Every call re-checks the backend; nothing is cached, since a user may be
    blocked at any moment.  Lookup errors and timeouts yield a
    ``LOOKUP_FAILED`` verdict instead of raising.

    Parameters:
        lookup:  The backend collaborator.
        timeout: Seconds a single lookup may take.
    """

    def __init__(self, lookup: UserLookup, *, timeout: float = 5.0) -> None:
        if timeout <= 0:
            raise PipelineConfigError("auth_gate", "timeout must be positive")
        self._lookup = lookup
        self.timeout = timeout

    async def authorize(self, identity: str) -> UserVerdict:
        try:
            async with asyncio.timeout(self.timeout):
                user = await self._lookup.find_user_by_identity(identity)
        except TimeoutError:
            logger.warning("user_lookup_timeout", identity=identity, timeout=self.timeout)
            return UserVerdict.lookup_failed(f"lookup timed out after {self.timeout}s")
        except Exception as e:
            logger.warning(
                "user_lookup_failed",
                identity=identity,
                error=str(e),
                error_type=type(e).__name__,
            )
            return UserVerdict.lookup_failed(f"{type(e).__name__}: {e}")

        if user is None:
            return UserVerdict.unregistered()
        if not user.is_active:
            return UserVerdict.blocked(user)
        return UserVerdict.active(user)

    def export(self) -> dict[str, Any]:
        return {"timeout": self.timeout, "lookup": type(self._lookup).__name__}
