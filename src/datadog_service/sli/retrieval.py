"""
SLI retrieval task handler.

Answers ``get-sli.triggered`` events addressed to the Datadog SLI provider:
fetches the service's query catalog, queries Datadog once per indicator and
reports the collected values in a ``get-sli.finished`` event.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable

import structlog

from datadog_service.config.settings import HandlerConfig
from datadog_service.core.errors import ConfigurationSourceError, EventDeliveryError, ProviderError
from datadog_service.events.models import (
    KeptnEvent,
    Result,
    SLIResult,
    Status,
    TaskOutcome,
    TriggerContext,
)
from datadog_service.events.sender import EventSender
from datadog_service.logging import SERVICE_NAME
from datadog_service.providers.base import MetricsBackend
from datadog_service.resources.source import ConfigurationSource
from datadog_service.sli.template import resolve_query
from datadog_service.sli.timestamps import parse_timestamp

logger = structlog.get_logger()

SLI_PROVIDER = "datadog"
SLI_RESOURCE_URI = "datadog/sli.yaml"

BackendFactory = Callable[[], MetricsBackend]
Sleeper = Callable[[float], Awaitable[None]]


class SLIRetrievalHandler:
    """Runs one get-sli task execution per call to :meth:`handle`."""

    def __init__(
        self,
        config: HandlerConfig,
        sender: EventSender,
        configuration_source: ConfigurationSource,
        backend_factory: BackendFactory,
        *,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.config = config
        self.sender = sender
        self.configuration_source = configuration_source
        self.backend_factory = backend_factory
        self._sleep = sleep

    async def handle(self, event: KeptnEvent) -> TaskOutcome | None:
        """
        Process a get-sli.triggered event.

        Returns:
            The reported outcome, or None when the event targets another provider

        Raises:
            TimestampParseError: If the window bounds cannot be parsed (no finished event is sent)
            ConfigurationSourceError: If the SLI file cannot be fetched (after reporting errored)
            EventDeliveryError: If the finished event cannot be delivered
        """
        ctx = TriggerContext.from_event_data(event.data)
        log = logger.bind(
            project=ctx.project, stage=ctx.stage, service=ctx.service, provider=ctx.provider
        )

        if ctx.provider != SLI_PROVIDER:
            log.info("get_sli_skipped", reason="provider_mismatch")
            return None

        log.info("get_sli_started", indicators=list(ctx.indicators), start=ctx.start, end=ctx.end)
        await self._announce(event, ctx, log)

        # Timestamps are parsed after the started event has gone out; a bad
        # window leaves that started event without a finished counterpart.
        start = parse_timestamp(ctx.start)
        end = parse_timestamp(ctx.end)

        try:
            catalog = await self.configuration_source.get_sli_configuration(
                ctx.project, ctx.stage, ctx.service, SLI_RESOURCE_URI
            )
        except ConfigurationSourceError as exc:
            log.error("sli_configuration_fetch_failed", resource=SLI_RESOURCE_URI, error=exc.message)
            outcome = TaskOutcome(
                status=Status.ERRORED,
                result=Result.FAILED,
                labels=ctx.labels,
                window_start=ctx.start,
                window_end=ctx.end,
                message=f"Failed to fetch SLI file {SLI_RESOURCE_URI}: {exc.message}",
            )
            await self._report(event, ctx, outcome)
            raise

        results, errored = await self._collect(ctx, catalog, start, end, log)

        if errored:
            outcome = TaskOutcome(
                status=Status.ERRORED,
                result=Result.FAILED,
                labels=ctx.labels,
                indicator_values=tuple(results),
                window_start=ctx.start,
                window_end=ctx.end,
                message="Failed to retrieve one or more indicators",
            )
        else:
            outcome = TaskOutcome(
                status=Status.SUCCEEDED,
                result=Result.PASS,
                labels=ctx.labels,
                indicator_values=tuple(results),
                window_start=ctx.start,
                window_end=ctx.end,
            )

        log.info(
            "get_sli_finished",
            status=outcome.status.value,
            result=outcome.result.value,
            value_count=len(results),
        )
        await self._report(event, ctx, outcome)
        return outcome

    async def _announce(self, event: KeptnEvent, ctx: TriggerContext, log) -> None:
        try:
            await self.sender.send_task_started(event, ctx.payload, SERVICE_NAME)
        except EventDeliveryError as exc:
            # Delivery failures of the started event do not abort the task
            log.error("started_event_not_sent", error=exc.message)

    async def _report(self, event: KeptnEvent, ctx: TriggerContext, outcome: TaskOutcome) -> None:
        await self.sender.send_task_finished(event, outcome.to_event_data(ctx), SERVICE_NAME)

    async def _collect(
        self,
        ctx: TriggerContext,
        catalog: dict[str, str],
        start: datetime,
        end: datetime,
        log,
    ) -> tuple[list[SLIResult], bool]:
        backend = self.backend_factory()
        results: list[SLIResult] = []
        errored = False

        for indicator in ctx.indicators:
            await self._sleep(self.config.settling_delay)

            template = catalog.get(indicator)
            if template is None:
                log.warning("indicator_not_configured", indicator=indicator, resource=SLI_RESOURCE_URI)
                errored = True
                continue

            query = resolve_query(template, ctx, start, end)
            try:
                series = await backend.query_range(query, start, end)
            except ProviderError as exc:
                log.error("indicator_query_failed", indicator=indicator, query=query, error=exc.message)
                errored = True
                continue

            point = series[0].latest_point() if series else None
            if point is None or point.value is None:
                log.info("indicator_no_data", indicator=indicator, query=query, series_count=len(series))
                continue

            result = SLIResult(metric=indicator, value=point.value, success=True)
            log.info("indicator_collected", indicator=indicator, value=result.value)
            results.append(result)

        return results, errored
