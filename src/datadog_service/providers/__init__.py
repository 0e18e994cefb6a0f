"""Metrics backend providers."""

from __future__ import annotations

from datadog_service.config.settings import Settings
from datadog_service.providers.base import (
    MetricPoint,
    MetricsBackend,
    MetricSeries,
    ProviderHealth,
)
from datadog_service.providers.datadog import DatadogProvider, DatadogProviderError


def create_datadog_provider(settings: Settings) -> DatadogProvider:
    """Build a fresh Datadog provider from settings."""
    return DatadogProvider(
        api_key=settings.dd_api_key,
        app_key=settings.dd_app_key,
        site=settings.dd_site,
        timeout=settings.http_timeout,
    )


__all__ = [
    "DatadogProvider",
    "DatadogProviderError",
    "MetricPoint",
    "MetricSeries",
    "MetricsBackend",
    "ProviderHealth",
    "create_datadog_provider",
]
