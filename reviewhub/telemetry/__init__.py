"""Telemetry utilities for exporting review events and metrics."""

from .event_sink import EventSink, FileEventSink, HttpEventSink, NullEventSink, sink_from_settings
from .metrics import (
    configure_metrics,
    increment_automation_dispatch,
    increment_webhook_enqueue_failure,
    increment_webhook_ingestion,
    record_aggregation_duration,
    shutdown_metrics,
    collect_prometheus_metrics,
)

__all__ = [
    "EventSink",
    "FileEventSink",
    "HttpEventSink",
    "NullEventSink",
    "sink_from_settings",
    "configure_metrics",
    "increment_automation_dispatch",
    "increment_webhook_enqueue_failure",
    "increment_webhook_ingestion",
    "record_aggregation_duration",
    "shutdown_metrics",
    "collect_prometheus_metrics",
]
