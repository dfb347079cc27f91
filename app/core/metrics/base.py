"""
Métricas Prometheus del motor de programación de clases.
"""
import logging

from prometheus_client import CollectorRegistry, Counter

logger = logging.getLogger(__name__)

# Registry propio para no colisionar con el registry global en tests
metrics_registry = CollectorRegistry()

schedule_events_total = Counter(
    'academy_schedule_events_total',
    'Total schedule engine events',
    ['event_type', 'status'],  # create/update/regenerate/delete, success/failed/conflict
    registry=metrics_registry
)

instances_written_total = Counter(
    'academy_instances_written_total',
    'Total class instances written or removed',
    ['operation'],  # created, deleted, kept
    registry=metrics_registry
)


def track_schedule_event(event_type: str, status: str = "success") -> None:
    """Registrar un evento del motor de programación."""
    try:
        schedule_events_total.labels(event_type=event_type, status=status).inc()
    except Exception as e:
        logger.error(f"Error tracking schedule event {event_type}: {e}")


def track_instances(operation: str, count: int) -> None:
    """Registrar instancias creadas/eliminadas/conservadas."""
    if count <= 0:
        return
    try:
        instances_written_total.labels(operation=operation).inc(count)
    except Exception as e:
        logger.error(f"Error tracking instances ({operation}): {e}")
