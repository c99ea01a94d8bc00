"""Observability helpers for the merge service."""

from .metrics import MergeMetricsRegistry, RequestMetricsMiddleware, metrics_registry

__all__ = [
    "MergeMetricsRegistry",
    "RequestMetricsMiddleware",
    "metrics_registry",
]
