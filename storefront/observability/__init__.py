"""Observability helpers: logging, metrics, and health checks."""

from .logging_config import configure_logging, ensure_request_id
from .metrics import (
    increment_counter,
    set_gauge,
    observe_latency,
    record_event,
    get_metrics_snapshot,
    reset_metrics,
    counter_total,
    events_named,
)
from .health import check_database_health, check_payment_gateways

__all__ = [
    "configure_logging",
    "ensure_request_id",
    "increment_counter",
    "set_gauge",
    "observe_latency",
    "record_event",
    "get_metrics_snapshot",
    "reset_metrics",
    "counter_total",
    "events_named",
    "check_database_health",
    "check_payment_gateways",
]
