"""User lookup collaborator — the backend boundary consulted by the auth gate."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from update_pipeline.exceptions import UserLookupError
from update_pipeline.logging import get_logger

if TYPE_CHECKING:
    from update_pipeline.config import PipelineSettings

logger = get_logger(__name__)


class UserRecord(BaseModel):
    """A backend user as seen by the pipeline.

    Only ``is_active`` drives pipeline decisions; everything else is carried
    for the business handlers.  Unknown backend fields are preserved.

    A record without an ``isActive`` flag counts as inactive.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    id: str
    telegram_id: str | None = Field(default=None, alias="telegramId")
    username: str | None = None
    first_name: str = Field(default="", alias="firstName")
    role: str | None = None
    is_active: bool = Field(default=False, alias="isActive")


class UserLookup(Protocol):
    """Resolves an identity into a user record.

    Returns ``None`` when the identity is not registered.  May raise on
    backend or network failure; callers must treat that as indeterminate.
    """

    async def find_user_by_identity(self, identity: str) -> UserRecord | None: ...


class HttpUserLookup:
    """Looks users up through the backend's Telegram auth endpoint.

    Parameters:
        api_url: Backend base URL, usually ``PipelineSettings.api_url``
                 (see :meth:`from_settings`).
        client:  Pre-built ``httpx.AsyncClient`` (e.g. with a mock transport).
                 When omitted the lookup owns a client and closes it in
                 :meth:`aclose`.
        timeout: HTTP timeout in seconds for an owned client.
    """

    def __init__(
        self,
        api_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = f"{api_url.rstrip('/')}/api"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(
        cls,
        settings: PipelineSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> HttpUserLookup:
        return cls(settings.api_url, client=client, timeout=settings.lookup_timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def find_user_by_identity(self, identity: str) -> UserRecord | None:
        url = f"{self._base_url}/auth/telegram"
        logger.debug("user_lookup_request", identity=identity, url=url)

        response = await self._client.post(
            url,
            json={
                "telegramId": identity,
                "firstName": "Check",
                "skipRegistration": True,
            },
        )

        if response.status_code in (401, 404):
            return None
        if response.is_error:
            raise UserLookupError(identity, f"HTTP {response.status_code}")

        body: dict[str, Any] = response.json()
        user = body.get("user")
        if not user:
            return None

        try:
            return UserRecord.model_validate(user)
        except ValidationError as e:
            raise UserLookupError(identity, "malformed user payload") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpUserLookup:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
