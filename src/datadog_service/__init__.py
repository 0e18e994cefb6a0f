"""Keptn SLI provider backed by Datadog metrics."""

__version__ = "0.1.0"
