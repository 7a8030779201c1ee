"""
Prometheus Monitoring for FieldSeal.

Provides Prometheus metrics integration for:
- Fields sealed per collection and field
- Fields skipped per reason: "already_sealed" (guard hit) or "invalid" (validation failed)
- Event outcomes and processing latency

A persistent ConfigurationError shows up here as fields never being sealed
and events failing, which is how a broken key deployment is noticed.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, generate_latest

# =============================================================================
# Metrics Definitions
# =============================================================================

fields_sealed_total = Counter(
    "fieldseal_fields_sealed_total",
    "Total fields sealed",
    ["collection", "field"],
)

fields_skipped_total = Counter(
    "fieldseal_fields_skipped_total",
    "Total fields skipped during sealing",
    ["collection", "field", "reason"],
)

events_total = Counter(
    "fieldseal_events_total",
    "Total document change events processed",
    ["collection", "status"],
)

event_duration_seconds = Histogram(
    "fieldseal_event_duration_seconds",
    "Document change event processing latency in seconds",
    ["collection"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)


# =============================================================================
# Helpers
# =============================================================================

def record_field_sealed(collection: str, field: str) -> None:
    fields_sealed_total.labels(collection=collection, field=field).inc()


def record_field_skipped(collection: str, field: str, reason: str) -> None:
    fields_skipped_total.labels(collection=collection, field=field, reason=reason).inc()


def record_event(collection: str, status: str) -> None:
    events_total.labels(collection=collection, status=status).inc()


@contextmanager
def track_event(collection: str) -> Iterator[None]:
    """
    Time one event for the duration histogram.

    Example:
        with track_event("Junkshop"):
            pipeline.process(event)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        event_duration_seconds.labels(collection=collection).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Render all metrics in the Prometheus text exposition format."""
    return generate_latest()


__all__ = [
    "event_duration_seconds",
    "events_total",
    "fields_sealed_total",
    "fields_skipped_total",
    "get_metrics",
    "record_event",
    "record_field_sealed",
    "record_field_skipped",
    "track_event",
]
