"""
OpenTelemetry setup for the file handler.

Until setup_telemetry() installs real providers, the API hands out proxy
tracers and meters that record nothing, so library code can always ask
for a tracer or a counter.
"""

import logging
from typing import Any

from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter,
)
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from .config import settings

logger = logging.getLogger(__name__)

_tracer: Any = None
_meter: Any = None


def setup_telemetry(service_name: str, service_version: str = "1.0.0"):
    """
    Set up OpenTelemetry tracing and metrics.

    Args:
        service_name: Name of the service (e.g., 'filehandler-cli')
        service_version: Version of the service
    """
    global _tracer, _meter

    if not settings.OTEL_ENABLED:
        logger.info("OpenTelemetry is disabled")
        return

    resource = Resource.create(
        {
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": settings.ENVIRONMENT,
        }
    )

    try:
        tracer_provider = TracerProvider(resource=resource)
        span_exporter = OTLPSpanExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True,
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
        trace.set_tracer_provider(tracer_provider)
        _tracer = trace.get_tracer(service_name, service_version)
        logger.info(
            f"Tracing enabled, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}"
        )
    except Exception as e:
        logger.warning(f"Failed to set up tracing: {e}")

    try:
        metric_exporter = OTLPMetricExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True,
        )
        metric_reader = PeriodicExportingMetricReader(
            metric_exporter,
            export_interval_millis=60000,
        )
        meter_provider = MeterProvider(
            resource=resource, metric_readers=[metric_reader]
        )
        metrics.set_meter_provider(meter_provider)
        _meter = metrics.get_meter(service_name, service_version)
        logger.info("Metrics enabled")
    except Exception as e:
        logger.warning(f"Failed to set up metrics: {e}")

    # Remote blobs are fetched with httpx
    try:
        HTTPXClientInstrumentor().instrument()
        logger.info("Auto-instrumentation enabled for httpx")
    except Exception as e:
        logger.warning(f"Failed to instrument httpx: {e}")


def get_tracer():
    """Get the global tracer instance."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(settings.OTEL_SERVICE_NAME)
    return _tracer


def get_meter():
    """Get the global meter instance."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(settings.OTEL_SERVICE_NAME)
    return _meter


class IngestionMetrics:
    """File ingestion metrics."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        meter = get_meter()

        # Counters
        self.files_ingested = meter.create_counter(
            name="filehandler.files_ingested",
            description="Files that produced a cache entry",
            unit="1",
        )

        self.files_skipped = meter.create_counter(
            name="filehandler.files_skipped",
            description="Files dropped without failing the batch",
            unit="1",
        )

        self.read_failures = meter.create_counter(
            name="filehandler.read_failures",
            description="Files whose bytes could not be read",
            unit="1",
        )

        self.chunks_read = meter.create_counter(
            name="filehandler.chunks_read",
            description="Slices read on the streaming JSON path",
            unit="1",
        )

        # Histograms
        self.ingest_duration = meter.create_histogram(
            name="filehandler.ingest_duration",
            description="Time to ingest one file",
            unit="ms",
        )

        self._initialized = True

    def record_file_ingested(self, file_format: str, dataset_format: str):
        """Record a file was turned into a cache entry."""
        self.files_ingested.add(
            1, {"file_format": file_format, "dataset_format": dataset_format}
        )

    def record_file_skipped(self, file_format: str, reason: str):
        """Record a file was skipped."""
        self.files_skipped.add(1, {"file_format": file_format, "reason": reason})

    def record_read_failure(self, file_format: str, error_type: str):
        """Record a read failure."""
        self.read_failures.add(
            1, {"file_format": file_format, "error_type": error_type}
        )

    def record_chunk_read(self):
        """Record one streamed slice."""
        self.chunks_read.add(1)

    def record_ingest_time(self, duration_ms: float, file_format: str):
        """Record the wall time spent on one file."""
        self.ingest_duration.record(duration_ms, {"file_format": file_format})
