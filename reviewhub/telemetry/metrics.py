"""OpenTelemetry metrics instrumentation helpers."""

from __future__ import annotations

import logging
from typing import Optional

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from reviewhub.core.config import settings

_logger = logging.getLogger(__name__)

_metrics_enabled = False
_meter = None
_provider: MeterProvider | None = None
_webhook_ingestion_counter = None
_webhook_enqueue_failure_counter = None
_automation_dispatch_counter = None
_aggregation_duration_hist = None


def configure_metrics() -> None:
    """Initialise the metrics provider if enabled via settings."""

    global _metrics_enabled, _meter, _provider
    global _webhook_ingestion_counter, _webhook_enqueue_failure_counter
    global _automation_dispatch_counter, _aggregation_duration_hist

    if not settings.otel_enabled:
        return
    if _metrics_enabled:
        return

    exporter_name = settings.otel_exporter.lower().strip()
    metric_readers = []

    if exporter_name == "console":
        metric_readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))
    elif exporter_name == "prometheus":
        from opentelemetry.exporter.prometheus import PrometheusMetricReader

        metric_readers.append(PrometheusMetricReader())
    elif exporter_name == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "OTLP exporter selected but opentelemetry-exporter-otlp is not installed."
            ) from exc
        endpoint = settings.otel_otlp_endpoint
        exporter = OTLPMetricExporter(endpoint=endpoint) if endpoint else OTLPMetricExporter()
        metric_readers.append(PeriodicExportingMetricReader(exporter))
    else:
        _logger.warning("Unsupported OTEL exporter '%s'; defaulting to console", exporter_name)
        metric_readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))

    _provider = MeterProvider(metric_readers=metric_readers, resource=Resource.create({"service.name": "reviewhub"}))
    metrics.set_meter_provider(_provider)
    _meter = metrics.get_meter("reviewhub")
    _webhook_ingestion_counter = _meter.create_counter(
        name="reviewhub.webhook.ingestions",
        unit="1",
        description="Webhook events accepted and enqueued",
    )
    _webhook_enqueue_failure_counter = _meter.create_counter(
        name="reviewhub.webhook.enqueue_failures",
        unit="1",
        description="Webhook events the job queue refused",
    )
    _automation_dispatch_counter = _meter.create_counter(
        name="reviewhub.automation.dispatches",
        unit="1",
        description="Automation dispatch attempts by outcome",
    )
    _aggregation_duration_hist = _meter.create_histogram(
        name="reviewhub.dashboard.aggregation.duration",
        unit="s",
        description="Enriched pull request aggregation duration in seconds",
    )
    _metrics_enabled = True


def increment_webhook_ingestion(platform: str) -> None:
    if _metrics_enabled and _webhook_ingestion_counter is not None:
        _webhook_ingestion_counter.add(1, {"platform": platform})


def increment_webhook_enqueue_failure(platform: str) -> None:
    if _metrics_enabled and _webhook_enqueue_failure_counter is not None:
        _webhook_enqueue_failure_counter.add(1, {"platform": platform})


def increment_automation_dispatch(outcome: str, platform: Optional[str] = None) -> None:
    if _metrics_enabled and _automation_dispatch_counter is not None:
        attributes = {"outcome": outcome}
        if platform:
            attributes["platform"] = platform
        _automation_dispatch_counter.add(1, attributes)


def record_aggregation_duration(seconds: float) -> None:
    if _metrics_enabled and _aggregation_duration_hist is not None:
        _aggregation_duration_hist.record(max(seconds, 0.0))


def collect_prometheus_metrics() -> tuple[bytes, str]:
    """Render the default Prometheus registry fed by ``PrometheusMetricReader``."""

    return generate_latest(), CONTENT_TYPE_LATEST


def shutdown_metrics() -> None:
    global _metrics_enabled, _provider
    if _metrics_enabled and _provider is not None:
        try:
            _provider.shutdown()
        except Exception:  # pragma: no cover
            _logger.exception("Failed to shutdown metrics provider")
        finally:
            _metrics_enabled = False
            _provider = None
