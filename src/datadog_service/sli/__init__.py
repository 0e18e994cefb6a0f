"""SLI retrieval and monitoring task handlers."""

from datadog_service.sli.monitoring import ConfigureMonitoringHandler
from datadog_service.sli.retrieval import SLI_PROVIDER, SLI_RESOURCE_URI, SLIRetrievalHandler
from datadog_service.sli.template import duration_seconds, resolve_query
from datadog_service.sli.timestamps import parse_timestamp

__all__ = [
    "ConfigureMonitoringHandler",
    "SLI_PROVIDER",
    "SLI_RESOURCE_URI",
    "SLIRetrievalHandler",
    "duration_seconds",
    "parse_timestamp",
    "resolve_query",
]
