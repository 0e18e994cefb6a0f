from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol


@dataclass(frozen=True)
class MetricPoint:
    timestamp: float
    value: float | None


@dataclass(frozen=True)
class MetricSeries:
    """One time series returned by a range query."""

    metric: str
    points: tuple[MetricPoint, ...] = ()

    def latest_point(self) -> MetricPoint | None:
        return self.points[-1] if self.points else None


@dataclass(frozen=True)
class ProviderHealth:
    status: Literal["healthy", "degraded", "unreachable"]
    details: str | None = None


class MetricsBackend(Protocol):
    """Minimal metrics backend interface used by the SLI retrieval handler."""

    name: str

    async def health_check(self) -> ProviderHealth:
        ...

    async def query_range(
        self, query: str, start: datetime, end: datetime
    ) -> list[MetricSeries]:
        ...
