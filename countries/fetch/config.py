"""Configuration model for the HTTP fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from countries.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
)


class FetchConfig(BaseModel):
    """Configuration for HTTP fetch operations.

    Every request is a single attempt; callers decide whether to try again.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = (
        DEFAULT_TIMEOUT_SECONDS
    )
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=100 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    follow_redirects: bool = True
    extra_headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("extra_headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credential headers are stored in config."""
        forbidden = {"authorization", "cookie", "x-api-key"}
        for key in v:
            if key.lower() in forbidden:
                msg = (
                    f"Header '{key}' must not be stored in config; "
                    "use environment variables"
                )
                raise ValueError(msg)
        return v
