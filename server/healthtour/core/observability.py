"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CollectorRegistry
import structlog

from .config import settings

SERVICE_NAME = "healthtour-booking-api"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Total bookings created',
    ['category'],
    registry=REGISTRY
)

BOOKINGS_CONFIRMED = Counter(
    'bookings_confirmed_total',
    'Total bookings that reserved package capacity',
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    'bookings_cancelled_total',
    'Total bookings cancelled',
    registry=REGISTRY
)

TRANSACTIONS_RECORDED = Counter(
    'booking_transactions_recorded_total',
    'Total payment transactions recorded',
    ['status'],
    registry=REGISTRY
)

REVIEWS_WRITTEN = Counter(
    'reviews_written_total',
    'Total review create/update/delete operations',
    ['operation'],
    registry=REGISTRY
)

CAPACITY_UTILIZATION = Gauge(
    'package_capacity_utilization',
    'Capacity utilization percentage',
    ['package_id'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource(app_name: str) -> Resource:
    return Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    trace.set_tracer_provider(TracerProvider(resource=_resource(app_name)))

    # Export only when an OTLP endpoint is configured
    otlp_endpoint = getattr(settings, 'otlp_endpoint', None)
    if otlp_endpoint:
        span_processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
        trace.get_tracer_provider().add_span_processor(span_processor)

    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""
    otlp_endpoint = getattr(settings, 'otlp_endpoint', None)
    if otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=otlp_endpoint),
            export_interval_millis=60000
        )
        metrics.set_meter_provider(
            MeterProvider(resource=_resource(app_name), metric_readers=[reader])
        )

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy():
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument()


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_booking_created(category: str):
        """Record a booking creation."""
        BOOKINGS_CREATED.labels(category=category).inc()

    @staticmethod
    def record_booking_confirmed():
        """Record a capacity reservation for a booking."""
        BOOKINGS_CONFIRMED.inc()

    @staticmethod
    def record_booking_cancelled():
        """Record a booking cancellation."""
        BOOKINGS_CANCELLED.inc()

    @staticmethod
    def record_transaction(status: str):
        """Record an appended payment transaction."""
        TRANSACTIONS_RECORDED.labels(status=status).inc()

    @staticmethod
    def record_review_written(operation: str):
        """Record a review mutation (create, update, delete)."""
        REVIEWS_WRITTEN.labels(operation=operation).inc()

    @staticmethod
    def set_capacity_utilization(package_id: str, current_bookings: int, max_capacity: int):
        """Set capacity utilization percentage for a package."""
        utilization = 100.0 * current_bookings / max_capacity if max_capacity else 100.0
        CAPACITY_UTILIZATION.labels(package_id=package_id).set(utilization)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
