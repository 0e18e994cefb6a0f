import logging
from typing import Any

import structlog

SERVICE_NAME = "datadog-service"


def _add_service_name(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def parse_log_level(value: str | None, default: int = logging.INFO) -> int:
    """Translate a LOG_LEVEL value such as ``debug`` or ``WARNING`` to a logging level."""
    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    if isinstance(level, int):
        return level
    structlog.get_logger().error("invalid_log_level", value=value)
    return default


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure structlog/standard logging bridge."""

    if isinstance(level, str):
        level = parse_log_level(level)

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service_name,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def bind_event_context(event_id: str | None, keptn_context: str | None) -> None:
    """Attach the inbound event's identifiers to every log line until cleared."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        event_id=event_id or "",
        keptn_context=keptn_context or "",
    )
