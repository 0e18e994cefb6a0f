from __future__ import annotations

import re
from datetime import datetime, timezone

from datadog_service.core.errors import TimestampParseError

RFC3339_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$", re.ASCII
)
EPOCH_PATTERN = re.compile(r"^[+-]?\d+$", re.ASCII)


def _parse_rfc3339(value: str) -> datetime | None:
    text = value.strip()
    if not RFC3339_PATTERN.match(text):
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_timestamp(value: str) -> datetime:
    """
    Parse an evaluation window bound.

    Accepts RFC3339 (``2024-01-01T00:05:00Z``) or Unix epoch seconds as a
    decimal string (``1704067500``). Epoch values are interpreted as UTC.

    Raises:
        TimestampParseError: If neither format matches
    """
    if not isinstance(value, str):
        raise TimestampParseError(
            f"Invalid timestamp {value!r}: expected a string", {"timestamp": value}
        )

    parsed = _parse_rfc3339(value)
    if parsed is not None:
        return parsed

    text = value.strip()
    if not EPOCH_PATTERN.match(text):
        raise TimestampParseError(
            f"Invalid timestamp {value!r}: expected RFC3339 or Unix epoch seconds",
            {"timestamp": value},
        )

    try:
        return datetime.fromtimestamp(int(text), tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise TimestampParseError(
            f"Timestamp {value!r} is out of range", {"timestamp": value}
        ) from exc
