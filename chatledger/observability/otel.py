"""OpenTelemetry + Prometheus fallback wiring for chatledger."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from chatledger import config

logger = logging.getLogger("chatledger.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_pipeline_runs_counter: Any | None = None
_pipeline_latency_hist: Any | None = None
_repairs_counter: Any | None = None
_correlations_counter: Any | None = None
_classification_counter: Any | None = None
_parser_failure_counter: Any | None = None

_prom_enabled = False
_prom_pipeline_runs_counter: Any | None = None
_prom_pipeline_latency_hist: Any | None = None
_prom_repairs_counter: Any | None = None
_prom_correlations_counter: Any | None = None
_prom_classification_counter: Any | None = None
_prom_parser_failure_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str | None) -> str:
    return (value or "").strip() or "unknown"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _pipeline_runs_counter, _pipeline_latency_hist, _repairs_counter, _correlations_counter
    global _classification_counter, _parser_failure_counter
    global _prom_enabled
    global _prom_pipeline_runs_counter, _prom_pipeline_latency_hist, _prom_repairs_counter
    global _prom_correlations_counter, _prom_classification_counter, _prom_parser_failure_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CHATLEDGER_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "chatledger"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "chatledger",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("chatledger")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("chatledger")

    _pipeline_runs_counter = meter.create_counter(
        "chatledger_pipeline_runs_total",
        unit="1",
        description="Count of timeline pipeline runs",
    )
    _pipeline_latency_hist = meter.create_histogram(
        "chatledger_pipeline_latency_ms",
        unit="ms",
        description="Latency of timeline pipeline runs",
    )
    _repairs_counter = meter.create_counter(
        "chatledger_timestamp_repairs_total",
        unit="1",
        description="Timestamps clamped by monotonic repair",
    )
    _correlations_counter = meter.create_counter(
        "chatledger_commit_correlations_total",
        unit="1",
        description="Checkpoints matched to a commit message",
    )
    _classification_counter = meter.create_counter(
        "chatledger_classified_nodes_total",
        unit="1",
        description="Feed nodes by classified event kind",
    )
    _parser_failure_counter = meter.create_counter(
        "chatledger_parser_failures_total",
        unit="1",
        description="Count of node read and classification failures",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_pipeline_runs_counter = Counter(
                "chatledger_pipeline_runs_total",
                "Count of timeline pipeline runs",
                ["result"],
            )
            _prom_pipeline_latency_hist = Histogram(
                "chatledger_pipeline_latency_ms",
                "Latency of timeline pipeline runs",
                ["result"],
            )
            _prom_repairs_counter = Counter(
                "chatledger_timestamp_repairs_total",
                "Timestamps clamped by monotonic repair",
            )
            _prom_correlations_counter = Counter(
                "chatledger_commit_correlations_total",
                "Checkpoints matched to a commit message",
            )
            _prom_classification_counter = Counter(
                "chatledger_classified_nodes_total",
                "Feed nodes by classified event kind",
                ["kind"],
            )
            _prom_parser_failure_counter = Counter(
                "chatledger_parser_failures_total",
                "Count of node read and classification failures",
                ["parser"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_pipeline_run(
    result: str,
    duration_ms: float,
    *,
    repair_count: int = 0,
    correlated_count: int = 0,
) -> None:
    labels = {"result": _label(result)}
    latency = max(0.0, float(duration_ms))
    repairs = max(0, int(repair_count))
    correlated = max(0, int(correlated_count))
    if _enabled and _pipeline_runs_counter is not None:
        _pipeline_runs_counter.add(1, labels)
    if _enabled and _pipeline_latency_hist is not None:
        _pipeline_latency_hist.record(latency, labels)
    if _enabled and _repairs_counter is not None and repairs > 0:
        _repairs_counter.add(repairs)
    if _enabled and _correlations_counter is not None and correlated > 0:
        _correlations_counter.add(correlated)
    if _prom_enabled and _prom_pipeline_runs_counter is not None:
        _prom_pipeline_runs_counter.labels(**labels).inc()
    if _prom_enabled and _prom_pipeline_latency_hist is not None:
        _prom_pipeline_latency_hist.labels(**labels).observe(latency)
    if _prom_enabled and _prom_repairs_counter is not None and repairs > 0:
        _prom_repairs_counter.inc(repairs)
    if _prom_enabled and _prom_correlations_counter is not None and correlated > 0:
        _prom_correlations_counter.inc(correlated)


def record_classification(kind: str) -> None:
    labels = {"kind": _label(kind)}
    if _enabled and _classification_counter is not None:
        _classification_counter.add(1, labels)
    if _prom_enabled and _prom_classification_counter is not None:
        _prom_classification_counter.labels(**labels).inc()


def record_parser_failure(parser: str) -> None:
    labels = {"parser": _label(parser)}
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        _prom_parser_failure_counter.labels(**labels).inc()
