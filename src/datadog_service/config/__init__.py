"""
datadog-service configuration.

Pydantic-based settings loaded from environment variables and ``.env``,
plus the immutable ``HandlerConfig`` derived from them.
"""

from datadog_service.config.settings import (
    MIN_SETTLING_DELAY_SECONDS,
    HandlerConfig,
    Settings,
    enforce_settling_delay_floor,
    get_settings,
)

__all__ = [
    "MIN_SETTLING_DELAY_SECONDS",
    "HandlerConfig",
    "Settings",
    "enforce_settling_delay_floor",
    "get_settings",
]
