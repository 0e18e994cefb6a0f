"""Root test configuration."""

import logging
from datetime import datetime
from typing import Any

import pytest
import structlog
from datadog_service.core.errors import ResourceNotFoundError
from datadog_service.events.models import KeptnEvent
from datadog_service.providers.base import MetricPoint, MetricSeries, ProviderHealth


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def make_get_sli_event(
    *,
    provider: str = "datadog",
    start: str = "2024-01-01T00:00:00Z",
    end: str = "2024-01-01T00:05:00Z",
    indicators: list[str] | None = None,
    labels: dict[str, str] | None = None,
) -> KeptnEvent:
    data: dict[str, Any] = {
        "project": "sockshop",
        "stage": "staging",
        "service": "cart",
        "get-sli": {
            "sliProvider": provider,
            "start": start,
            "end": end,
            "indicators": indicators if indicators is not None else ["response_time", "error_rate"],
        },
    }
    if labels is not None:
        data["labels"] = labels
    return KeptnEvent(
        type="sh.keptn.event.get-sli.triggered",
        source="lighthouse-service",
        data=data,
        id="trigger-1",
        shkeptncontext="ctx-1",
    )


def series(*values: float | None, metric: str = "trace.duration") -> MetricSeries:
    return MetricSeries(
        metric=metric,
        points=tuple(MetricPoint(timestamp=1704067200 + i * 60, value=v) for i, v in enumerate(values)),
    )


class FakeBackend:
    """Scripted metrics backend keyed by resolved query."""

    name = "fake"

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = responses or {}
        self.queries: list[tuple[str, datetime, datetime]] = []

    async def health_check(self) -> ProviderHealth:
        return ProviderHealth(status="healthy")

    async def query_range(self, query: str, start: datetime, end: datetime) -> list[MetricSeries]:
        self.queries.append((query, start, end))
        response = self.responses.get(query, [])
        if isinstance(response, Exception):
            raise response
        return response


class FakeConfigurationSource:
    def __init__(self, catalog: dict[str, str] | None = None, error: Exception | None = None) -> None:
        self.catalog = catalog or {}
        self.error = error
        self.requests: list[tuple[str, str, str, str]] = []

    async def get_sli_configuration(
        self, project: str, stage: str, service: str, resource_uri: str
    ) -> dict[str, str]:
        self.requests.append((project, stage, service, resource_uri))
        if self.error is not None:
            raise self.error
        return self.catalog


@pytest.fixture
def get_sli_event():
    return make_get_sli_event()


@pytest.fixture
def missing_catalog_source():
    return FakeConfigurationSource(error=ResourceNotFoundError("Resource datadog/sli.yaml not found"))
