"""Placeholder substitution for SLI query templates.

Supports substitution of:
- $PROJECT / $project - Project name
- $STAGE / $stage - Stage name
- $SERVICE / $service - Service name
- $DURATION - Evaluation window length in whole seconds (rounded up)

Unknown placeholders are left as-is; Datadog rejects the query if they matter.
"""

from __future__ import annotations

import math
from datetime import datetime

from datadog_service.events.models import TriggerContext


def duration_seconds(start: datetime, end: datetime) -> int:
    """Window length in seconds, rounded up."""
    return math.ceil((end - start).total_seconds())


def resolve_query(template: str, ctx: TriggerContext, start: datetime, end: datetime) -> str:
    """Substitute context placeholders in ``template``.

    Example:
        >>> resolve_query("avg:trace.duration{$service}", ctx, start, end)
        'avg:trace.duration{cart}'
    """
    query = template
    for placeholder, value in (
        ("$PROJECT", ctx.project),
        ("$STAGE", ctx.stage),
        ("$SERVICE", ctx.service),
        ("$project", ctx.project),
        ("$stage", ctx.stage),
        ("$service", ctx.service),
    ):
        query = query.replace(placeholder, value)

    return query.replace("$DURATION", str(duration_seconds(start, end)))
