from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog
from fastapi import BackgroundTasks, Body, FastAPI, HTTPException, Request, status
from pydantic import BaseModel

from datadog_service.config import Settings, get_settings
from datadog_service.core.errors import DatadogServiceError, ValidationError
from datadog_service.dispatch import EventDispatcher, create_dispatcher
from datadog_service.events.models import BINARY_HEADER_PREFIX, KeptnEvent
from datadog_service.logging import configure_logging

logger = structlog.get_logger()


class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"


class AcceptedResponse(BaseModel):
    id: str
    type: str


async def process_event(dispatcher: EventDispatcher, event: KeptnEvent) -> None:
    """Run a dispatched task after the receiver has acknowledged the event."""
    try:
        await dispatcher.dispatch(event)
    except DatadogServiceError as exc:
        logger.error(
            "event_processing_failed",
            event_id=event.id,
            type=event.type,
            error_type=type(exc).__name__,
            error=exc.message,
            details=exc.details,
        )
    except Exception as exc:  # pragma: no cover
        logger.exception("event_processing_crashed", event_id=event.id, type=event.type, error=str(exc))


def create_app(
    settings: Settings | None = None,
    dispatcher: EventDispatcher | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    dispatcher = dispatcher or create_dispatcher(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        logger.info(
            "receiver_starting",
            port=settings.rcv_port,
            path=settings.rcv_path,
            env=settings.env,
        )
        yield

    app = FastAPI(title="datadog-service", version="0.1.0", lifespan=lifespan)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check() -> HealthResponse:
        """Basic health check endpoint."""
        return HealthResponse(status="healthy")

    @app.post(
        settings.rcv_path,
        response_model=AcceptedResponse,
        status_code=status.HTTP_202_ACCEPTED,
        tags=["events"],
    )
    async def receive_event(
        request: Request,
        background_tasks: BackgroundTasks,
        body: dict[str, Any] = Body(...),  # noqa: B008
    ) -> AcceptedResponse:
        """Accept a structured- or binary-mode CloudEvent and process it in the background."""
        try:
            if f"{BINARY_HEADER_PREFIX}type" in request.headers:
                event = KeptnEvent.from_binary(request.headers, body)
            else:
                event = KeptnEvent.from_dict(body)
        except ValidationError as exc:
            logger.warning("invalid_cloudevent", error=exc.message)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

        background_tasks.add_task(process_event, dispatcher, event)
        return AcceptedResponse(id=event.id, type=event.type)

    return app
