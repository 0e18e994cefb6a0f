"""
Configuration resource retrieval.

Fetches service-scoped resources (such as ``datadog/sli.yaml``) either from
the Keptn configuration service or, in local mode, from the filesystem.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import structlog
import yaml

from datadog_service.core.errors import ConfigurationSourceError, ResourceNotFoundError

logger = structlog.get_logger()


def parse_sli_configuration(content: str, resource_uri: str) -> dict[str, str]:
    """
    Parse an SLI configuration document into an indicator → query mapping.

    Expected shape::

        spec_version: "1.0"
        indicators:
          response_time: "avg:trace.http.request.duration{service:$service}"
    """
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigurationSourceError(
            f"Invalid YAML in {resource_uri}: {exc}", {"resource": resource_uri}
        ) from exc

    if not isinstance(document, dict) or not isinstance(document.get("indicators"), dict):
        raise ConfigurationSourceError(
            f"{resource_uri} does not define an 'indicators' mapping",
            {"resource": resource_uri},
        )

    return {str(name): str(query) for name, query in document["indicators"].items()}


class ConfigurationSource(Protocol):
    """Contract for retrieving the SLI query catalog of a service."""

    async def get_sli_configuration(
        self, project: str, stage: str, service: str, resource_uri: str
    ) -> dict[str, str]:
        ...


class ConfigurationServiceSource:
    """Reads resources through the Keptn configuration service API."""

    def __init__(self, url: str, *, timeout: float = 30.0) -> None:
        self._base_url = url.rstrip("/")
        self._timeout = timeout

    async def get_resource(
        self, project: str, stage: str, service: str, resource_uri: str
    ) -> str:
        path = (
            f"/v1/project/{quote(project, safe='')}"
            f"/stage/{quote(stage, safe='')}"
            f"/service/{quote(service, safe='')}"
            f"/resource/{quote(resource_uri, safe='')}"
        )
        details = {"project": project, "stage": stage, "service": service, "resource": resource_uri}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(f"{self._base_url}{path}")
                if resp.status_code == 404:
                    raise ResourceNotFoundError(f"Resource {resource_uri} not found", details)
                resp.raise_for_status()
                body: Any = resp.json()
        except httpx.HTTPError as exc:
            raise ConfigurationSourceError(
                f"Failed to fetch resource {resource_uri}: {exc}", details
            ) from exc
        except ValueError as exc:
            raise ConfigurationSourceError(
                f"Invalid response for resource {resource_uri}: {exc}", details
            ) from exc

        if not isinstance(body, dict):
            raise ConfigurationSourceError(
                f"Invalid response for resource {resource_uri}: expected a JSON object", details
            )

        content = body.get("resourceContent")
        if not content:
            raise ResourceNotFoundError(f"Resource {resource_uri} is empty", details)

        try:
            return base64.b64decode(content).decode("utf-8")
        except (binascii.Error, TypeError, ValueError) as exc:
            raise ConfigurationSourceError(
                f"Resource {resource_uri} is not valid base64 text", details
            ) from exc

    async def get_sli_configuration(
        self, project: str, stage: str, service: str, resource_uri: str
    ) -> dict[str, str]:
        content = await self.get_resource(project, stage, service, resource_uri)
        return parse_sli_configuration(content, resource_uri)


class LocalFileConfigurationSource:
    """Reads resources from a local directory (``ENV=local``)."""

    def __init__(self, base_dir: str | Path = ".") -> None:
        self._base_dir = Path(base_dir)

    async def get_sli_configuration(
        self, project: str, stage: str, service: str, resource_uri: str
    ) -> dict[str, str]:
        path = self._base_dir / resource_uri
        if not path.is_file():
            raise ResourceNotFoundError(
                f"Resource {resource_uri} not found", {"path": str(path)}
            )

        logger.debug("reading_local_resource", path=str(path), service=service)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationSourceError(
                f"Failed to read {path}: {exc}", {"path": str(path)}
            ) from exc
        return parse_sli_configuration(content, resource_uri)
