"""
datadog-service command line.

Commands:
    datadog-service serve              - Listen for Keptn CloudEvents on RCV_PORT/RCV_PATH
    datadog-service handle EVENT_FILE  - Process one CloudEvent JSON file and exit
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Sequence

import structlog

from datadog_service.config import Settings, get_settings
from datadog_service.core.errors import ValidationError, main_with_error_handling
from datadog_service.dispatch import create_dispatcher
from datadog_service.events.models import KeptnEvent
from datadog_service.events.sender import InMemoryEventSender
from datadog_service.logging import configure_logging

logger = structlog.get_logger()


def serve_command(settings: Settings) -> int:
    import uvicorn

    from datadog_service.api.main import create_app

    logger.info("starting_datadog_service", port=settings.rcv_port, path=settings.rcv_path)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.rcv_port, log_config=None)
    return 0


def load_event_file(path: str | Path) -> KeptnEvent:
    try:
        body = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValidationError(f"Cannot read event file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Event file {path} is not valid JSON: {exc}") from exc
    return KeptnEvent.from_dict(body)


@main_with_error_handling()
def handle_command(settings: Settings, event_file: str, dry_run: bool = False) -> int:
    """Dispatch a single event synchronously; errors map to exit codes."""
    event = load_event_file(event_file)
    sender = InMemoryEventSender() if dry_run else None
    dispatcher = create_dispatcher(settings, sender=sender)

    asyncio.run(dispatcher.dispatch(event))

    if isinstance(sender, InMemoryEventSender):
        for sent in sender.sent_events:
            print(json.dumps(sent.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datadog-service", description="Keptn SLI provider for Datadog"
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Listen for Keptn CloudEvents")

    handle_parser = subparsers.add_parser("handle", help="Process a single CloudEvent JSON file")
    handle_parser.add_argument("event_file", help="Path to a structured CloudEvent JSON file")
    handle_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print outbound events instead of sending them to the event broker",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "serve":
        sys.exit(serve_command(settings))

    if args.command == "handle":
        sys.exit(handle_command(settings, args.event_file, dry_run=args.dry_run))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
