"""Prometheus metrics helpers for the Hostfully importer."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Gauge, Histogram

_hostfully_ready_gauge = Gauge(
    "importer_hostfully_adapter_ready",
    "Whether the Hostfully adapter has credentials configured (1) or not (0).",
)
_hostfully_api_requests = Counter(
    "importer_hostfully_api_requests_total",
    "Hostfully API requests by endpoint and outcome.",
    ["endpoint", "outcome"],
)
_import_units = Counter(
    "importer_hostfully_units_total",
    "Listings processed by the importer, by outcome.",
    ["outcome"],
)
_import_duration = Histogram(
    "importer_hostfully_unit_duration_seconds",
    "Duration of a single listing import in seconds.",
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 120),
)
_catalog_syncs = Counter(
    "importer_hostfully_catalog_syncs_total",
    "Amenity catalog synchronizations by strategy and outcome.",
    ["strategy", "outcome"],
)
_queue_remaining = Gauge(
    "importer_hostfully_queue_remaining",
    "Listings still waiting in the import queue.",
)


def record_hostfully_adapter_status(ready: bool) -> None:
    """Set the Hostfully adapter readiness gauge."""

    _hostfully_ready_gauge.set(1 if ready else 0)


def record_api_request(endpoint: str, outcome: Literal["success", "failure"]) -> None:
    _hostfully_api_requests.labels(endpoint=endpoint, outcome=outcome).inc()


def record_import_unit(*, outcome: Literal["created", "updated", "errors"], duration_seconds: float) -> None:
    """Capture metrics for one imported listing."""

    _import_units.labels(outcome=outcome).inc()
    _import_duration.observe(max(duration_seconds, 0.0))


def record_catalog_sync(*, strategy: Literal["catalog", "per_listing"], outcome: str) -> None:
    _catalog_syncs.labels(strategy=strategy, outcome=outcome).inc()


def record_queue_remaining(remaining: int) -> None:
    _queue_remaining.set(max(remaining, 0))
