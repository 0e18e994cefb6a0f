"""
Unified error handling for datadog-service.

Every error that can escape a task handler derives from
``DatadogServiceError`` and carries an exit code, so the one-shot CLI can
report it consistently.

Exit Codes:
- 0: Success
- 10: Configuration error (SLI file missing, configuration service down)
- 11: Provider error (Datadog or event broker failure)
- 12: Validation error (malformed event or timestamps)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class DatadogServiceError(Exception):
    """Base exception for datadog-service errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(DatadogServiceError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ProviderError(DatadogServiceError):
    """Raised when an external provider/service fails."""

    exit_code = ExitCode.PROVIDER_ERROR


class ValidationError(DatadogServiceError):
    """Raised for validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class TimestampParseError(ValidationError):
    """Raised when a window bound is neither RFC3339 nor Unix epoch seconds."""


class UnhandledEventError(ValidationError):
    """Raised when an inbound event type has no handler."""


class ConfigurationSourceError(ConfigurationError):
    """Raised when the configuration source cannot be reached or parsed."""


class ResourceNotFoundError(ConfigurationSourceError):
    """Raised when a named resource does not exist for the service."""


class EventDeliveryError(ProviderError):
    """Raised when an outbound event cannot be delivered to the broker."""


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - DatadogServiceError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except DatadogServiceError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator
