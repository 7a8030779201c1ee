"""
Infrastructure module for FieldSeal.

- Prometheus metrics for sealing outcomes and latency
"""

from src.infra.monitoring import get_metrics, track_event

__all__ = [
    "get_metrics",
    "track_event",
]
