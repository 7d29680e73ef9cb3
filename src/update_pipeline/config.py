"""PipelineSettings — process-wide configuration, fixed at start-up."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from update_pipeline.exceptions import PipelineConfigError

# Environment variable -> settings field
_ENV_FIELDS: dict[str, str] = {
    "PIPELINE_WINDOW_SECONDS": "window_seconds",
    "PIPELINE_MAX_REQUESTS": "max_requests",
    "PIPELINE_LOOKUP_TIMEOUT": "lookup_timeout",
    "API_URL": "api_url",
    "LOG_LEVEL": "log_level",
    "PIPELINE_JSON_LOGS": "json_logs",
}


class PipelineSettings(BaseModel):
    """Configuration surface of the pipeline.

    Attributes:
        window_seconds: Rate-limit window length in seconds.
        max_requests:   Requests admitted per identity per window.
        lookup_timeout: Seconds a single user lookup may take.
        api_url:        Backend base URL used by :class:`HttpUserLookup`.
        log_level:      Standard library log level name.
        json_logs:      Render log lines as JSON instead of console output.
    """

    model_config = ConfigDict(frozen=True)

    window_seconds: float = Field(default=60.0, gt=0)
    max_requests: int = Field(default=20, gt=0)
    lookup_timeout: float = Field(default=5.0, gt=0)
    api_url: str = "http://backend:3001"
    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PipelineSettings:
        """Build settings from environment variables, falling back to defaults.

        Raises:
            PipelineConfigError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            field: env[var] for var, field in _ENV_FIELDS.items() if env.get(var)
        }
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise PipelineConfigError("settings", str(e)) from e
