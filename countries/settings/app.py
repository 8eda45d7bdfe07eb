"""Application settings powered by Pydantic BaseSettings."""

import logging
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from countries.fetch.config import FetchConfig
from countries.fetch.constants import DEFAULT_MAX_RESPONSE_SIZE_BYTES


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="COUNTRIES_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    conversion_base_url: str = "https://ezgif.com"
    image_target_width: Annotated[int, Field(gt=0)] | None = 300
    image_cache_max_entries: Annotated[int, Field(gt=0)] = 200
    db_directory: Path | None = None
    db_version: Annotated[int, Field(ge=1)] = 1
    http_timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = 30.0
    max_response_size_bytes: Annotated[int, Field(ge=1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("conversion_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) base URL without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            msg = f"conversion_base_url must be an http(s) URL, got {v!r}"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Require a standard logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level

    @property
    def log_level_number(self) -> int:
        """Get the numeric logging level."""
        return int(logging.getLevelName(self.log_level))

    def fetch_config(self) -> FetchConfig:
        """Build the HTTP fetch configuration."""
        return FetchConfig(
            timeout_seconds=self.http_timeout_seconds,
            max_response_size_bytes=self.max_response_size_bytes,
        )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
