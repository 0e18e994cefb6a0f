"""
Tests for the get-sli task handler.

Covers provider routing, started/finished event emission, per-indicator
failure tolerance and the settling delay.
"""

from unittest.mock import AsyncMock

import pytest
import respx
from conftest import FakeBackend, FakeConfigurationSource, make_get_sli_event, series
from datadog_service.config.settings import HandlerConfig
from datadog_service.core.errors import (
    ConfigurationSourceError,
    EventDeliveryError,
    ResourceNotFoundError,
    TimestampParseError,
)
from datadog_service.events.models import Result, Status
from datadog_service.events.sender import InMemoryEventSender
from datadog_service.providers.datadog import DatadogProvider, DatadogProviderError
from datadog_service.resources import LocalFileConfigurationSource
from datadog_service.sli.retrieval import SLI_RESOURCE_URI, SLIRetrievalHandler
from httpx import Response

CATALOG = {
    "response_time": "avg:trace.http.request.duration{service:$service,env:$STAGE}",
    "error_rate": "sum:trace.http.request.errors{service:$service}.as_count()",
}
RESPONSE_TIME_QUERY = "avg:trace.http.request.duration{service:cart,env:staging}"
ERROR_RATE_QUERY = "sum:trace.http.request.errors{service:cart}.as_count()"


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sender():
    return InMemoryEventSender()


@pytest.fixture
def sleep():
    return RecordingSleep()


def make_handler(sender, source, backend, sleep, config=None):
    return SLIRetrievalHandler(
        config=config or HandlerConfig(),
        sender=sender,
        configuration_source=source,
        backend_factory=lambda: backend,
        sleep=sleep,
    )


def finished_data(sender):
    finished = [e for e in sender.sent_events if e.type.endswith(".finished")]
    assert len(finished) == 1
    return finished[0].data


class TestProviderRouting:
    @pytest.mark.asyncio
    async def test_other_provider_is_ignored(self, sender, sleep):
        backend = FakeBackend()
        source = FakeConfigurationSource(CATALOG)
        handler = make_handler(sender, source, backend, sleep)

        outcome = await handler.handle(make_get_sli_event(provider="prometheus"))

        assert outcome is None
        assert sender.sent_events == []
        assert source.requests == []
        assert backend.queries == []
        assert sleep.calls == []


class TestSuccessfulRetrieval:
    @pytest.mark.asyncio
    async def test_started_then_finished_with_all_values(self, sender, sleep):
        backend = FakeBackend(
            {
                RESPONSE_TIME_QUERY: [series(120.0, 250.5)],
                ERROR_RATE_QUERY: [series(0.0, 3.0, metric="errors")],
            }
        )
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)
        event = make_get_sli_event(labels={"buildId": "42"})

        outcome = await handler.handle(event)

        types = [e.type for e in sender.sent_events]
        assert types == ["sh.keptn.event.get-sli.started", "sh.keptn.event.get-sli.finished"]

        started = sender.sent_events[0]
        assert started.data == event.data
        assert started.source == "datadog-service"
        assert started.triggeredid == "trigger-1"
        assert started.shkeptncontext == "ctx-1"

        data = finished_data(sender)
        assert data["status"] == "succeeded"
        assert data["result"] == "pass"
        assert data["labels"] == {"buildId": "42"}
        assert data["get-sli"]["start"] == "2024-01-01T00:00:00Z"
        assert data["get-sli"]["end"] == "2024-01-01T00:05:00Z"
        assert data["get-sli"]["indicatorValues"] == [
            {"metric": "response_time", "value": 250.5, "success": True},
            {"metric": "error_rate", "value": 3.0, "success": True},
        ]

        assert outcome.status is Status.SUCCEEDED
        assert outcome.result is Result.PASS

    @pytest.mark.asyncio
    async def test_catalog_requested_for_service_resource(self, sender, sleep):
        source = FakeConfigurationSource(CATALOG)
        handler = make_handler(sender, source, FakeBackend(), sleep)

        await handler.handle(make_get_sli_event())

        assert source.requests == [("sockshop", "staging", "cart", SLI_RESOURCE_URI)]

    @pytest.mark.asyncio
    async def test_queries_issued_in_indicator_order_over_window(self, sender, sleep):
        backend = FakeBackend()
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        await handler.handle(make_get_sli_event(indicators=["error_rate", "response_time"]))

        assert [q for q, _, _ in backend.queries] == [ERROR_RATE_QUERY, RESPONSE_TIME_QUERY]
        _, start, end = backend.queries[0]
        assert (end - start).total_seconds() == 300

    @pytest.mark.asyncio
    async def test_epoch_window_is_accepted(self, sender, sleep):
        backend = FakeBackend({RESPONSE_TIME_QUERY: [series(1.5)]})
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(
            make_get_sli_event(start="1704067200", end="1704067500", indicators=["response_time"])
        )

        assert outcome.status is Status.SUCCEEDED
        assert finished_data(sender)["get-sli"]["start"] == "1704067200"

    @pytest.mark.asyncio
    async def test_no_indicators_still_passes(self, sender, sleep):
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), FakeBackend(), sleep)

        outcome = await handler.handle(make_get_sli_event(indicators=[]))

        assert outcome.status is Status.SUCCEEDED
        assert outcome.indicator_values == ()
        assert sleep.calls == []


class TestSettlingDelay:
    @pytest.mark.asyncio
    async def test_sleeps_before_every_query(self, sender, sleep):
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), FakeBackend(), sleep)

        await handler.handle(make_get_sli_event(indicators=["response_time", "error_rate", "missing"]))

        assert sleep.calls == [60, 60, 60]

    @pytest.mark.asyncio
    async def test_configured_delay_used(self, sender, sleep):
        handler = make_handler(
            sender,
            FakeConfigurationSource(CATALOG),
            FakeBackend(),
            sleep,
            config=HandlerConfig(settling_delay=90),
        )

        await handler.handle(make_get_sli_event())

        assert sleep.calls == [90, 90]

    @pytest.mark.asyncio
    async def test_delay_below_floor_is_raised(self, sender, sleep):
        handler = make_handler(
            sender,
            FakeConfigurationSource(CATALOG),
            FakeBackend(),
            sleep,
            config=HandlerConfig(settling_delay=10),
        )

        await handler.handle(make_get_sli_event(indicators=["response_time"]))

        assert sleep.calls == [60]


class TestPartialFailures:
    @pytest.mark.asyncio
    async def test_query_error_fails_task_but_keeps_other_values(self, sender, sleep):
        backend = FakeBackend(
            {
                RESPONSE_TIME_QUERY: DatadogProviderError("Datadog API error: rate limited"),
                ERROR_RATE_QUERY: [series(0.5)],
            }
        )
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(make_get_sli_event())

        assert outcome.status is Status.ERRORED
        assert outcome.result is Result.FAILED
        data = finished_data(sender)
        assert data["status"] == "errored"
        assert data["result"] == "fail"
        assert data["get-sli"]["indicatorValues"] == [
            {"metric": "error_rate", "value": 0.5, "success": True}
        ]
        assert len(backend.queries) == 2

    @pytest.mark.asyncio
    async def test_empty_series_is_not_an_error(self, sender, sleep):
        backend = FakeBackend({RESPONSE_TIME_QUERY: [], ERROR_RATE_QUERY: [series()]})
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(make_get_sli_event())

        assert outcome.status is Status.SUCCEEDED
        assert outcome.result is Result.PASS
        assert outcome.indicator_values == ()

    @pytest.mark.asyncio
    async def test_first_series_last_point_wins(self, sender, sleep):
        backend = FakeBackend(
            {RESPONSE_TIME_QUERY: [series(1.0, 2.0, 3.0), series(99.0, metric="other")]}
        )
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(make_get_sli_event(indicators=["response_time"]))

        assert [r.value for r in outcome.indicator_values] == [3.0]

    @pytest.mark.asyncio
    async def test_null_latest_point_counts_as_no_data(self, sender, sleep):
        backend = FakeBackend({RESPONSE_TIME_QUERY: [series(1.0, None)]})
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(make_get_sli_event(indicators=["response_time"]))

        assert outcome.status is Status.SUCCEEDED
        assert outcome.indicator_values == ()

    @pytest.mark.asyncio
    async def test_indicator_missing_from_catalog_fails_task(self, sender, sleep):
        backend = FakeBackend({RESPONSE_TIME_QUERY: [series(4.0)]})
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(make_get_sli_event(indicators=["throughput", "response_time"]))

        assert outcome.status is Status.ERRORED
        assert [r.metric for r in outcome.indicator_values] == ["response_time"]
        assert [q for q, _, _ in backend.queries] == [RESPONSE_TIME_QUERY]

    @pytest.mark.asyncio
    async def test_values_never_exceed_indicators(self, sender, sleep):
        backend = FakeBackend(
            {RESPONSE_TIME_QUERY: [series(1.0)], ERROR_RATE_QUERY: [series(2.0)]}
        )
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(make_get_sli_event(indicators=["response_time"]))

        assert len(outcome.indicator_values) == 1

    @pytest.mark.asyncio
    async def test_malformed_datadog_body_does_not_stop_later_indicators(self, sender, sleep):
        ok_body = {
            "status": "ok",
            "series": [{"metric": "errors", "pointlist": [[1704067200000.0, 2.0]]}],
        }
        handler = make_handler(
            sender, FakeConfigurationSource(CATALOG), DatadogProvider(api_key="k"), sleep
        )

        with respx.mock:
            route = respx.get("https://api.datadoghq.com/api/v1/query").mock(
                side_effect=[Response(200, json=[]), Response(200, json=ok_body)]
            )

            outcome = await handler.handle(make_get_sli_event())

        assert route.call_count == 2
        assert route.calls[1].request.url.params["query"] == ERROR_RATE_QUERY
        assert outcome.status is Status.ERRORED
        assert finished_data(sender)["get-sli"]["indicatorValues"] == [
            {"metric": "error_rate", "value": 2.0, "success": True}
        ]


class TestCatalogFailure:
    @pytest.mark.asyncio
    async def test_reports_errored_and_raises(self, sender, sleep, missing_catalog_source):
        backend = FakeBackend()
        handler = make_handler(sender, missing_catalog_source, backend, sleep)

        with pytest.raises(ResourceNotFoundError):
            await handler.handle(make_get_sli_event(indicators=["a", "b"]))

        types = [e.type for e in sender.sent_events]
        assert types == ["sh.keptn.event.get-sli.started", "sh.keptn.event.get-sli.finished"]
        data = finished_data(sender)
        assert data["status"] == "errored"
        assert data["result"] == "fail"
        assert data["get-sli"]["indicatorValues"] == []
        assert "datadog/sli.yaml" in data["message"]
        assert backend.queries == []
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_unreadable_local_file_reports_errored(self, sender, sleep, tmp_path):
        (tmp_path / "datadog").mkdir()
        (tmp_path / "datadog" / "sli.yaml").write_bytes(b"indicators:\n  a: \"\xff\xfe\"\n")
        backend = FakeBackend()
        handler = make_handler(sender, LocalFileConfigurationSource(tmp_path), backend, sleep)

        with pytest.raises(ConfigurationSourceError):
            await handler.handle(make_get_sli_event(indicators=["a"]))

        data = finished_data(sender)
        assert data["status"] == "errored"
        assert data["result"] == "fail"
        assert backend.queries == []


class TestMalformedWindow:
    @pytest.mark.asyncio
    async def test_bad_start_leaves_started_without_finished(self, sender, sleep):
        """Regression: the started event is sent before the window is parsed."""
        source = FakeConfigurationSource(CATALOG)
        handler = make_handler(sender, source, FakeBackend(), sleep)

        with pytest.raises(TimestampParseError):
            await handler.handle(make_get_sli_event(start="not-a-time"))

        assert [e.type for e in sender.sent_events] == ["sh.keptn.event.get-sli.started"]
        assert source.requests == []

    @pytest.mark.asyncio
    async def test_bad_end_raises(self, sender, sleep):
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), FakeBackend(), sleep)

        with pytest.raises(TimestampParseError):
            await handler.handle(make_get_sli_event(end="yesterday"))


class TestEventDelivery:
    @pytest.mark.asyncio
    async def test_started_failure_does_not_abort(self, sleep):
        sender = AsyncMock()
        sender.send_task_started.side_effect = EventDeliveryError("broker down")
        backend = FakeBackend({RESPONSE_TIME_QUERY: [series(7.0)]})
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), backend, sleep)

        outcome = await handler.handle(make_get_sli_event(indicators=["response_time"]))

        assert outcome.status is Status.SUCCEEDED
        sender.send_task_finished.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_finished_failure_is_raised(self, sleep):
        sender = AsyncMock()
        sender.send_task_finished.side_effect = EventDeliveryError("broker down")
        handler = make_handler(sender, FakeConfigurationSource(CATALOG), FakeBackend(), sleep)

        with pytest.raises(EventDeliveryError):
            await handler.handle(make_get_sli_event())
