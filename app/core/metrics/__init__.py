# Metrics module for Prometheus monitoring
from .base import (
    metrics_registry,
    track_schedule_event,
    track_instances
)

__all__ = [
    "metrics_registry",
    "track_schedule_event",
    "track_instances",
]
