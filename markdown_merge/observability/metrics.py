"""In-process counters for merge operations served over HTTP."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from threading import Lock
from time import perf_counter
from typing import Any, Dict, Mapping

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


@dataclass
class OperationStats:
    """Running totals for one kind of operation (merge, section merge, repair)."""

    count: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0


class MergeMetricsRegistry:
    """Thread-safe aggregate of merge outcomes and request timings."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.reset()

    def reset(self) -> None:
        """Reset all counters (useful for tests)."""

        with self._lock:
            self._operations: Dict[str, OperationStats] = {}
            self._node_totals: Counter[str] = Counter()
            self._failures: Counter[str] = Counter()
            self._frozen_blocks = 0
            self._requests: Counter[str] = Counter()

    def record_merge(
        self, operation: str, stats: Mapping[str, Any], frozen_blocks: int = 0
    ) -> None:
        duration_ms = float(stats.get("merge_time_ms") or 0.0)
        with self._lock:
            entry = self._operations.setdefault(operation, OperationStats())
            entry.count += 1
            entry.total_duration_ms += duration_ms
            entry.max_duration_ms = max(entry.max_duration_ms, duration_ms)
            for key in ("nodes_added", "nodes_removed", "nodes_modified", "inner_merges"):
                self._node_totals[key] += int(stats.get(key) or 0)
            self._frozen_blocks += frozen_blocks

    def record_operation(self, operation: str, duration_ms: float = 0.0) -> None:
        with self._lock:
            entry = self._operations.setdefault(operation, OperationStats())
            entry.count += 1
            entry.total_duration_ms += duration_ms
            entry.max_duration_ms = max(entry.max_duration_ms, duration_ms)

    def record_failure(self, code: str) -> None:
        with self._lock:
            self._failures[code] += 1

    def record_request(self, method: str, path: str, status_code: int) -> None:
        with self._lock:
            self._requests[f"{method.upper()} {path} {status_code // 100}xx"] += 1

    def snapshot(self) -> Dict[str, object]:
        """Return a plain-dict copy of the current counters."""

        with self._lock:
            operations = {
                name: {
                    "count": entry.count,
                    "avg_duration_ms": entry.total_duration_ms / (entry.count or 1),
                    "max_duration_ms": entry.max_duration_ms,
                }
                for name, entry in self._operations.items()
            }
            return {
                "operations": operations,
                "nodes": {
                    key: self._node_totals.get(key, 0)
                    for key in ("nodes_added", "nodes_removed", "nodes_modified", "inner_merges")
                },
                "frozen_blocks": self._frozen_blocks,
                "failures": dict(self._failures),
                "requests": dict(self._requests),
            }


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Count requests per route and status family."""

    def __init__(self, app: ASGIApp, *, registry: MergeMetricsRegistry | None = None) -> None:
        super().__init__(app)
        self._registry = registry or metrics_registry

    async def dispatch(self, request: Request, call_next):
        started = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._registry.record_request(request.method, request.url.path, 500)
            raise
        self._registry.record_request(
            request.method, request.url.path, getattr(response, "status_code", 200)
        )
        response.headers["X-Process-Time-Ms"] = f"{(perf_counter() - started) * 1000.0:.2f}"
        return response


metrics_registry = MergeMetricsRegistry()

__all__ = [
    "MergeMetricsRegistry",
    "OperationStats",
    "RequestMetricsMiddleware",
    "metrics_registry",
]
