"""
Keptn event data models.

CloudEvent envelope, task payloads and the outcome reported back to Keptn.
Event types follow ``sh.keptn.event.<task>.<phase>``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from datadog_service.core.errors import ValidationError

KEPTN_EVENT_PREFIX = "sh.keptn.event"
CLOUDEVENTS_SPEC_VERSION = "1.0"
BINARY_HEADER_PREFIX = "ce-"


class TaskName(str, Enum):
    """Tasks this service reacts to."""

    GET_SLI = "get-sli"
    CONFIGURE_MONITORING = "configure-monitoring"


class Status(str, Enum):
    SUCCEEDED = "succeeded"
    ERRORED = "errored"


class Result(str, Enum):
    PASS = "pass"
    FAILED = "fail"


def get_triggered_event_type(task: TaskName | str) -> str:
    return f"{KEPTN_EVENT_PREFIX}.{TaskName(task).value}.triggered"


def get_started_event_type(task: TaskName | str) -> str:
    return f"{KEPTN_EVENT_PREFIX}.{TaskName(task).value}.started"


def get_finished_event_type(task: TaskName | str) -> str:
    return f"{KEPTN_EVENT_PREFIX}.{TaskName(task).value}.finished"


@dataclass(frozen=True)
class KeptnEvent:
    """CloudEvent as exchanged with the Keptn control plane."""

    type: str
    source: str
    data: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    time: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    shkeptncontext: str | None = None
    triggeredid: str | None = None
    specversion: str = CLOUDEVENTS_SPEC_VERSION
    datacontenttype: str = "application/json"

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> KeptnEvent:
        """Build an event from a structured CloudEvent JSON body."""
        if not isinstance(body, dict):
            raise ValidationError("CloudEvent body must be a JSON object")
        event_type = body.get("type")
        if not event_type:
            raise ValidationError("CloudEvent is missing the 'type' attribute")
        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError("CloudEvent 'data' must be a JSON object", {"type": event_type})

        kwargs: dict[str, Any] = {
            "type": event_type,
            "source": body.get("source", ""),
            "data": data,
            "shkeptncontext": body.get("shkeptncontext"),
            "triggeredid": body.get("triggeredid"),
        }
        for optional in ("id", "time", "specversion", "datacontenttype"):
            if body.get(optional):
                kwargs[optional] = body[optional]
        return cls(**kwargs)

    @classmethod
    def from_binary(cls, headers: Mapping[str, str], body: Any) -> KeptnEvent:
        """Build an event from a binary-mode CloudEvent (``ce-*`` headers, body is data)."""
        lowered = {name.lower(): value for name, value in headers.items()}
        envelope: dict[str, Any] = {
            name[len(BINARY_HEADER_PREFIX):]: value
            for name, value in lowered.items()
            if name.startswith(BINARY_HEADER_PREFIX)
        }
        if lowered.get("content-type"):
            envelope["datacontenttype"] = lowered["content-type"]
        envelope["data"] = body
        return cls.from_dict(envelope)

    def with_type(self, event_type: str) -> KeptnEvent:
        return KeptnEvent(
            type=event_type,
            source=self.source,
            data=self.data,
            id=self.id,
            time=self.time,
            shkeptncontext=self.shkeptncontext,
            triggeredid=self.triggeredid,
            specversion=self.specversion,
            datacontenttype=self.datacontenttype,
        )

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "specversion": self.specversion,
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "time": self.time,
            "datacontenttype": self.datacontenttype,
            "data": self.data,
        }
        if self.shkeptncontext:
            body["shkeptncontext"] = self.shkeptncontext
        if self.triggeredid:
            body["triggeredid"] = self.triggeredid
        return body


@dataclass(frozen=True)
class TriggerContext:
    """Input of one get-sli task execution."""

    project: str
    stage: str
    service: str
    provider: str
    start: str
    end: str
    indicators: tuple[str, ...] = ()
    labels: dict[str, str] = field(default_factory=dict)
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_event_data(cls, data: dict[str, Any]) -> TriggerContext:
        get_sli = data.get("get-sli") or {}
        if not isinstance(get_sli, dict):
            raise ValidationError("'get-sli' must be an object")
        indicators = get_sli.get("indicators") or []
        if isinstance(indicators, str) or not isinstance(indicators, list):
            raise ValidationError("'get-sli.indicators' must be a list of names")
        return cls(
            project=data.get("project", ""),
            stage=data.get("stage", ""),
            service=data.get("service", ""),
            provider=get_sli.get("sliProvider", ""),
            start=str(get_sli.get("start", "")),
            end=str(get_sli.get("end", "")),
            indicators=tuple(str(name) for name in indicators),
            labels=dict(data.get("labels") or {}),
            payload=data,
        )


@dataclass(frozen=True)
class SLIResult:
    metric: str
    value: float
    success: bool = True
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "metric": self.metric,
            "value": self.value,
            "success": self.success,
        }
        if self.message:
            result["message"] = self.message
        return result


@dataclass(frozen=True)
class TaskOutcome:
    """Payload of a get-sli.finished event."""

    status: Status
    result: Result
    labels: dict[str, str] = field(default_factory=dict)
    indicator_values: tuple[SLIResult, ...] = ()
    window_start: str = ""
    window_end: str = ""
    message: str = ""

    def to_event_data(self, ctx: TriggerContext) -> dict[str, Any]:
        data: dict[str, Any] = {
            "project": ctx.project,
            "stage": ctx.stage,
            "service": ctx.service,
            "labels": dict(self.labels),
            "status": self.status.value,
            "result": self.result.value,
            "get-sli": {
                "start": self.window_start,
                "end": self.window_end,
                "indicatorValues": [value.to_dict() for value in self.indicator_values],
            },
        }
        if self.message:
            data["message"] = self.message
        return data
