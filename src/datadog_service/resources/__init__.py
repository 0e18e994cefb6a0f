"""Configuration resource sources."""

from __future__ import annotations

from datadog_service.config.settings import Settings
from datadog_service.resources.source import (
    ConfigurationServiceSource,
    ConfigurationSource,
    LocalFileConfigurationSource,
    parse_sli_configuration,
)


def create_configuration_source(settings: Settings) -> ConfigurationSource:
    """Pick the filesystem or the configuration service depending on ENV."""
    if settings.use_local_filesystem:
        return LocalFileConfigurationSource(settings.resource_dir)
    return ConfigurationServiceSource(settings.configuration_service, timeout=settings.http_timeout)


__all__ = [
    "ConfigurationServiceSource",
    "ConfigurationSource",
    "LocalFileConfigurationSource",
    "create_configuration_source",
    "parse_sli_configuration",
]
