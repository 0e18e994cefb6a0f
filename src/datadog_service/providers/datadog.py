"""
Datadog provider for querying metrics.

Implements the metrics backend interface on top of the Datadog v1 query API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from datadog_service.core.errors import ProviderError
from datadog_service.providers.base import MetricPoint, MetricSeries, ProviderHealth

DEFAULT_USER_AGENT = "datadog-service/0.1.0"
DEFAULT_SITE = "datadoghq.com"


class DatadogProviderError(ProviderError):
    """Raised when the Datadog provider encounters an error."""


class DatadogProvider:
    """Datadog metrics provider."""

    name = "datadog"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        app_key: str | None = None,
        site: str = DEFAULT_SITE,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._base_url = f"https://api.{site.strip().rstrip('/')}"
        self._api_key = api_key
        self._app_key = app_key
        self._timeout = timeout
        self._user_agent = user_agent

    async def health_check(self) -> ProviderHealth:
        """Check that Datadog is reachable and the API key is valid."""
        try:
            data = await self._request("GET", "/api/v1/validate")
        except DatadogProviderError as exc:
            return ProviderHealth(status="unreachable", details=str(exc))
        if not data.get("valid", False):
            return ProviderHealth(status="degraded", details="API key rejected")
        return ProviderHealth(status="healthy")

    async def query_range(
        self,
        query: str,
        start: datetime,
        end: datetime,
    ) -> list[MetricSeries]:
        """
        Execute a metrics query over a time period.

        Args:
            query: Datadog metrics query string
            start: Start time
            end: End time

        Returns:
            Series in the order Datadog returned them. May be empty.

        Raises:
            DatadogProviderError: On transport, HTTP or API errors
        """
        params = {
            "query": query,
            "from": int(start.timestamp()),
            "to": int(end.timestamp()),
        }

        result = await self._request("GET", "/api/v1/query", params=params)
        raw_series = result.get("series") or []
        if not isinstance(raw_series, list):
            raise DatadogProviderError(f"Unexpected 'series' in Datadog response: {raw_series!r}")
        return [self._parse_series(raw) for raw in raw_series]

    def _parse_series(self, raw: Any) -> MetricSeries:
        if not isinstance(raw, dict):
            raise DatadogProviderError(f"Unexpected series entry from Datadog: {raw!r}")

        points = []
        try:
            for pair in raw.get("pointlist") or []:
                if len(pair) < 2:
                    continue
                # Datadog reports point timestamps in milliseconds
                timestamp = float(pair[0]) / 1000.0
                value = None if pair[1] is None else float(pair[1])
                points.append(MetricPoint(timestamp=timestamp, value=value))
        except (TypeError, ValueError) as exc:
            raise DatadogProviderError(f"Malformed pointlist from Datadog: {exc}") from exc

        return MetricSeries(
            metric=raw.get("metric") or raw.get("expression") or "",
            points=tuple(points),
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Execute HTTP request to Datadog."""
        url = f"{self._base_url}{path}"
        headers = kwargs.pop("headers", {}) or {}
        headers.setdefault("User-Agent", self._user_agent)
        headers.setdefault("Accept", "application/json")
        if self._api_key:
            headers["DD-API-KEY"] = self._api_key
        if self._app_key:
            headers["DD-APPLICATION-KEY"] = self._app_key

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    **kwargs,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise DatadogProviderError(str(exc)) from exc
        except ValueError as exc:
            raise DatadogProviderError(f"Invalid JSON from Datadog: {exc}") from exc

        if not isinstance(data, dict):
            raise DatadogProviderError(f"Unexpected response from Datadog: {data!r}")

        # Datadog reports query failures in-band with HTTP 200
        if data.get("status") == "error":
            error = data.get("error", "Unknown error")
            raise DatadogProviderError(f"Datadog API error: {error}")

        return data
