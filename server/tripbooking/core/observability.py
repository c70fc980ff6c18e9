"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "trip-booking-api"

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
SEATS_RESERVED = Counter(
    'schedule_seats_reserved_total',
    'Seats reserved on trip schedules',
    ['schedule_id'],
    registry=REGISTRY
)

RESERVATIONS_REJECTED = Counter(
    'schedule_reservations_rejected_total',
    'Reservations rejected for insufficient seats',
    ['schedule_id'],
    registry=REGISTRY
)

SEATS_RELEASED = Counter(
    'schedule_seats_released_total',
    'Seats returned to trip schedules',
    ['schedule_id', 'reason'],
    registry=REGISTRY
)

BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Bookings persisted',
    ['payment_method'],
    registry=REGISTRY
)

BOOKING_TRANSITIONS = Counter(
    'booking_status_transitions_total',
    'Booking status transitions applied by staff',
    ['from_status', 'to_status'],
    registry=REGISTRY
)

ATTENDANCE_MARKED = Counter(
    'booking_attendance_marked_total',
    'Attendance state changes',
    ['status'],
    registry=REGISTRY
)

SCANS_REJECTED = Counter(
    'attendance_scans_rejected_total',
    'Check-in scans that did not resolve to a confirmed booking',
    registry=REGISTRY
)

SIDE_EFFECT_FAILURES = Counter(
    'side_effect_failures_total',
    'Best-effort side effects that failed after the primary operation succeeded',
    ['effect'],
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
    provider = TracerProvider(resource=_resource(app_name))

    # Export only when a collector is configured
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000,
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(app_name), metric_readers=[reader]))

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
    def record_seats_reserved(schedule_id: str, seats: int):
        SEATS_RESERVED.labels(schedule_id=schedule_id).inc(seats)

    @staticmethod
    def record_reservation_rejected(schedule_id: str):
        RESERVATIONS_REJECTED.labels(schedule_id=schedule_id).inc()

    @staticmethod
    def record_seats_released(schedule_id: str, seats: int, reason: str):
        SEATS_RELEASED.labels(schedule_id=schedule_id, reason=reason).inc(seats)

    @staticmethod
    def record_booking_created(payment_method: str):
        BOOKINGS_CREATED.labels(payment_method=payment_method).inc()

    @staticmethod
    def record_transition(from_status: str, to_status: str):
        BOOKING_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_attendance(status: str):
        ATTENDANCE_MARKED.labels(status=status).inc()

    @staticmethod
    def record_scan_rejected():
        SCANS_REJECTED.inc()

    @staticmethod
    def record_side_effect_failure(effect: str):
        """Record a failed notification, activity or email side effect."""
        SIDE_EFFECT_FAILURES.labels(effect=effect).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
