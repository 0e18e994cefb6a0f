"""
Inbound event routing.

Every supported event type maps to exactly one ``TaskName``; anything else is
rejected with ``UnhandledEventError``.
"""

from __future__ import annotations

from typing import assert_never

import structlog

from datadog_service.config.settings import HandlerConfig, Settings
from datadog_service.core.errors import UnhandledEventError
from datadog_service.events.models import KeptnEvent, TaskName, get_triggered_event_type
from datadog_service.events.sender import EventSender, HTTPEventSender
from datadog_service.logging import bind_event_context
from datadog_service.providers import create_datadog_provider
from datadog_service.resources import create_configuration_source
from datadog_service.sli.monitoring import ConfigureMonitoringHandler
from datadog_service.sli.retrieval import SLIRetrievalHandler

logger = structlog.get_logger()

# Sent by the keptn CLI, which then waits for configure-monitoring.finished
LEGACY_CONFIGURE_MONITORING_TYPE = "sh.keptn.event.monitoring.configure"


def resolve_task(event_type: str) -> TaskName:
    """Map an inbound CloudEvent type to the task it triggers."""
    if event_type == LEGACY_CONFIGURE_MONITORING_TYPE:
        return TaskName.CONFIGURE_MONITORING
    for task in TaskName:
        if event_type == get_triggered_event_type(task):
            return task
    raise UnhandledEventError(f"Unhandled Keptn Cloud Event: {event_type}", {"type": event_type})


class EventDispatcher:
    def __init__(
        self,
        sli_handler: SLIRetrievalHandler,
        monitoring_handler: ConfigureMonitoringHandler,
    ) -> None:
        self.sli_handler = sli_handler
        self.monitoring_handler = monitoring_handler

    async def dispatch(self, event: KeptnEvent) -> None:
        bind_event_context(event.id, event.shkeptncontext)
        try:
            task = resolve_task(event.type)
            logger.info("event_received", type=event.type, task=task.value)

            if task is TaskName.GET_SLI:
                await self.sli_handler.handle(event)
            elif task is TaskName.CONFIGURE_MONITORING:
                await self.monitoring_handler.handle(
                    event.with_type(get_triggered_event_type(task))
                )
            else:
                assert_never(task)
        except UnhandledEventError as exc:
            logger.error("event_unhandled", type=event.type, error=exc.message)
            raise
        finally:
            structlog.contextvars.clear_contextvars()


def create_dispatcher(settings: Settings, sender: EventSender | None = None) -> EventDispatcher:
    """Wire handlers from settings."""
    if sender is None:
        sender = HTTPEventSender(settings.event_broker_url, timeout=settings.http_timeout)

    sli_handler = SLIRetrievalHandler(
        config=HandlerConfig.from_settings(settings),
        sender=sender,
        configuration_source=create_configuration_source(settings),
        backend_factory=lambda: create_datadog_provider(settings),
    )
    return EventDispatcher(sli_handler, ConfigureMonitoringHandler(sender))
