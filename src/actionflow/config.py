"""Engine configuration.

Configuration is loaded from:
- environment variables prefixed with `ACTIONFLOW_`
- and a local `.env` file (if present)

Tests can bypass the env file via `EngineSettings(_env_file=None)`.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from actionflow.logging import configure_logging


class EngineSettings(BaseSettings):
    """Settings shared by a bus and every model registered on it.

    Environment variables:
    - ACTIONFLOW_LOG_LEVEL
    - ACTIONFLOW_LOG_FORMAT                (json | text)
    - ACTIONFLOW_DEFAULT_SUSPEND_TIMEOUT   (seconds, 0 = wait forever)
    - ACTIONFLOW_TRACE_ACTIONS
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log record format",
    )
    default_suspend_timeout: float = Field(
        default=0.0,
        ge=0.0,
        description="Timeout applied when a model suspends without an explicit one",
    )
    trace_actions: bool = Field(
        default=False,
        description="Log every broadcast action at DEBUG level",
    )

    model_config = SettingsConfigDict(
        env_prefix="ACTIONFLOW_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def setup_logging(self) -> None:
        """Configure logging based on settings."""

        configure_logging(self.log_level, fmt=self.log_format)
