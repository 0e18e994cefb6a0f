"""
Outbound Keptn event delivery.

Builds ``.started`` / ``.finished`` CloudEvents linked to the triggering event
and hands them to the event broker.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from datadog_service.core.errors import EventDeliveryError
from datadog_service.events.models import KeptnEvent

logger = structlog.get_logger()

_STRUCTURED_CONTENT_TYPE = "application/cloudevents+json"


def _task_event_type(incoming: KeptnEvent, phase: str) -> str:
    if not incoming.type.endswith(".triggered"):
        raise EventDeliveryError(
            "Cannot derive task event type from a non-triggered event",
            {"type": incoming.type},
        )
    return f"{incoming.type[: -len('.triggered')]}.{phase}"


def build_task_event(
    incoming: KeptnEvent, phase: str, data: dict[str, Any], source: str
) -> KeptnEvent:
    """Build a ``<task>.<phase>`` event answering ``incoming``."""
    return KeptnEvent(
        type=_task_event_type(incoming, phase),
        source=source,
        data=data,
        shkeptncontext=incoming.shkeptncontext,
        triggeredid=incoming.id,
    )


class EventSender(Protocol):
    """Contract for delivering task lifecycle events."""

    async def send_task_started(
        self, incoming: KeptnEvent, data: dict[str, Any], source: str
    ) -> KeptnEvent:
        ...

    async def send_task_finished(
        self, incoming: KeptnEvent, data: dict[str, Any], source: str
    ) -> KeptnEvent:
        ...


class HTTPEventSender:
    """Posts structured CloudEvents to the Keptn event broker."""

    def __init__(self, url: str, *, timeout: float = 30.0) -> None:
        self._url = url
        self._timeout = timeout

    async def send(self, event: KeptnEvent) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    json=event.to_dict(),
                    headers={"Content-Type": _STRUCTURED_CONTENT_TYPE},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise EventDeliveryError(
                f"Failed to send {event.type} event: {exc}",
                {"event_id": event.id},
            ) from exc

        logger.debug("event_sent", type=event.type, event_id=event.id)

    async def send_task_started(
        self, incoming: KeptnEvent, data: dict[str, Any], source: str
    ) -> KeptnEvent:
        event = build_task_event(incoming, "started", data, source)
        await self.send(event)
        return event

    async def send_task_finished(
        self, incoming: KeptnEvent, data: dict[str, Any], source: str
    ) -> KeptnEvent:
        event = build_task_event(incoming, "finished", data, source)
        await self.send(event)
        return event


class InMemoryEventSender:
    """Records events instead of delivering them (local runs and tests)."""

    def __init__(self) -> None:
        self.sent_events: list[KeptnEvent] = []

    async def send_task_started(
        self, incoming: KeptnEvent, data: dict[str, Any], source: str
    ) -> KeptnEvent:
        event = build_task_event(incoming, "started", data, source)
        self.sent_events.append(event)
        return event

    async def send_task_finished(
        self, incoming: KeptnEvent, data: dict[str, Any], source: str
    ) -> KeptnEvent:
        event = build_task_event(incoming, "finished", data, source)
        self.sent_events.append(event)
        return event
