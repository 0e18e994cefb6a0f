"""
Application settings using Pydantic.

Environment variable names match the ones the service is deployed with
(RCV_PORT, RCV_PATH, ENV, CONFIGURATION_SERVICE, LOG_LEVEL, DD_API_KEY, ...).
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import structlog
from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = structlog.get_logger()

# Datadog serves stale aggregates for points younger than this.
MIN_SETTLING_DELAY_SECONDS = 60


def enforce_settling_delay_floor(seconds: float) -> float:
    """Raise a configured settling delay to the minimum, warning when it was lower."""
    if seconds < MIN_SETTLING_DELAY_SECONDS:
        logger.warning(
            "settling_delay_below_minimum",
            configured=seconds,
            effective=MIN_SETTLING_DELAY_SECONDS,
        )
        return MIN_SETTLING_DELAY_SECONDS
    return seconds


class Settings(BaseSettings):
    """Application settings."""

    # Event receiver
    rcv_port: int = 8080
    rcv_path: str = "/"

    # "local" reads resources from the filesystem instead of the configuration service
    env: str = "local"
    configuration_service: str = "http://configuration-service:8080"
    resource_dir: str = "."

    # Outbound events
    event_broker_url: str = "http://localhost:8081/event"

    # Logging
    log_level: str = "INFO"

    # SLI retrieval
    sli_settling_delay: float = MIN_SETTLING_DELAY_SECONDS

    # Datadog
    dd_api_key: str | None = None
    dd_app_key: str | None = None
    dd_site: str = "datadoghq.com"

    # HTTP client settings
    http_timeout: float = 30.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("sli_settling_delay")
    @classmethod
    def _settling_delay_floor(cls, value: float) -> float:
        return enforce_settling_delay_floor(value)

    @property
    def use_local_filesystem(self) -> bool:
        return self.env == "local"


@dataclass(frozen=True)
class HandlerConfig:
    """Immutable per-process configuration handed to task handlers."""

    settling_delay: float = MIN_SETTLING_DELAY_SECONDS

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "settling_delay", enforce_settling_delay_floor(self.settling_delay)
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> HandlerConfig:
        return cls(settling_delay=settings.sli_settling_delay)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
