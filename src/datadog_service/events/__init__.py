"""Keptn event models and delivery."""

from datadog_service.events.models import (
    KeptnEvent,
    Result,
    SLIResult,
    Status,
    TaskName,
    TaskOutcome,
    TriggerContext,
    get_finished_event_type,
    get_started_event_type,
    get_triggered_event_type,
)
from datadog_service.events.sender import EventSender, HTTPEventSender, InMemoryEventSender

__all__ = [
    "EventSender",
    "HTTPEventSender",
    "InMemoryEventSender",
    "KeptnEvent",
    "Result",
    "SLIResult",
    "Status",
    "TaskName",
    "TaskOutcome",
    "TriggerContext",
    "get_finished_event_type",
    "get_started_event_type",
    "get_triggered_event_type",
]
