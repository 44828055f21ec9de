"""OpenTelemetry and structlog configuration for the Notekeeper API."""

import logging
import os

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

# Service identification
SERVICE_NAME_VALUE = os.getenv("OTEL_SERVICE_NAME", "notekeeper-api")
SERVICE_VERSION_VALUE = os.getenv("OTEL_SERVICE_VERSION", "0.1.0")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Keys whose values never reach a log line
SENSITIVE_KEYS = frozenset({"password", "token", "access_token", "authorization"})

_providers: tuple[TracerProvider, MeterProvider] | None = None


def get_resource() -> Resource:
    """Create OpenTelemetry resource with service attributes."""
    return Resource.create(
        {
            SERVICE_NAME: SERVICE_NAME_VALUE,
            SERVICE_VERSION: SERVICE_VERSION_VALUE,
            "deployment.environment": ENVIRONMENT,
        }
    )


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


def _exporter_choice(signal: str) -> str | None:
    """
    Resolve which exporter a signal ("traces" or "metrics") should use.

    Returns "otlp", "console" or None when export is disabled.
    """
    logger = structlog.get_logger(__name__)

    if not _env_flag(f"OTEL_ENABLE_{signal.upper()}"):
        logger.info("otel_signal_disabled", signal=signal)
        return None

    exporter_type = os.getenv(f"OTEL_{signal.upper()}_EXPORTER", "console").lower()
    if exporter_type == "otlp":
        if not os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"):
            logger.warning("otel_otlp_endpoint_missing", signal=signal)
            return None
        return "otlp"
    if exporter_type == "console":
        return "console"

    logger.info("otel_export_disabled", signal=signal, exporter=exporter_type)
    return None


def configure_tracing() -> TracerProvider:
    """Configure OpenTelemetry tracing."""
    provider = TracerProvider(resource=get_resource())

    choice = _exporter_choice("traces")
    if choice == "otlp":
        exporter = OTLPSpanExporter(endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"))
        provider.add_span_processor(BatchSpanProcessor(exporter))
    elif choice == "console":
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    return provider


def configure_metrics() -> MeterProvider:
    """Configure OpenTelemetry metrics."""
    readers = []

    choice = _exporter_choice("metrics")
    if choice is not None:
        if choice == "otlp":
            exporter = OTLPMetricExporter(endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"))
        else:
            exporter = ConsoleMetricExporter()
        readers.append(
            PeriodicExportingMetricReader(
                exporter,
                export_interval_millis=int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000")),
            )
        )

    provider = MeterProvider(resource=get_resource(), metric_readers=readers)
    metrics.set_meter_provider(provider)
    return provider


def add_otel_context(logger, method_name, event_dict):
    """Add OpenTelemetry trace context to log events."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    else:
        event_dict["trace_id"] = "0" * 32
        event_dict["span_id"] = "0" * 16
    return event_dict


def redact_sensitive(logger, method_name, event_dict):
    """Mask credentials accidentally passed as log context."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = "****"
    return event_dict


def configure_logging():
    """Configure structlog with OpenTelemetry integration."""
    log_level = os.getenv("OTEL_LOG_LEVEL", "INFO").upper()
    log_format = os.getenv("LOG_FORMAT", "json").lower()  # json or console

    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level))

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_otel_context,
        redact_sensitive,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.get_logger().info("logging_configured", log_level=log_level, log_format=log_format)


def initialize_observability():
    """
    Initialize logging, tracing and metrics.

    Global OpenTelemetry providers can only be set once per process, so
    repeated application startups (the test client starts one per test)
    reuse the providers created by the first call.
    """
    global _providers

    if _providers is not None:
        return _providers

    configure_logging()

    logger = structlog.get_logger()
    logger.info("initializing_observability")

    _providers = (configure_tracing(), configure_metrics())

    logger.info(
        "observability_initialized",
        service_name=SERVICE_NAME_VALUE,
        service_version=SERVICE_VERSION_VALUE,
        environment=ENVIRONMENT,
    )

    return _providers


def get_tracer(name: str = __name__) -> trace.Tracer:
    """Get a tracer instance for creating spans."""
    return trace.get_tracer(name, SERVICE_VERSION_VALUE)


def get_meter(name: str = __name__) -> metrics.Meter:
    """Get a meter instance for creating metrics."""
    return metrics.get_meter(name, SERVICE_VERSION_VALUE)


class AppMetrics:
    """Application-specific metrics."""

    def __init__(self):
        meter = get_meter("notekeeper.metrics")

        # Counters
        self.user_signups = meter.create_counter(
            name="user.signups", description="Total number of user signups", unit="1"
        )

        self.user_logins = meter.create_counter(
            name="user.logins", description="Total number of user logins", unit="1"
        )

        self.auth_failures = meter.create_counter(
            name="auth.failures", description="Total number of authentication failures", unit="1"
        )

        self.permission_denials = meter.create_counter(
            name="access.denials",
            description="Requests rejected by the access control evaluator",
            unit="1",
        )

        self.entities_created = meter.create_counter(
            name="entities.created", description="Entities created, by entity type", unit="1"
        )

        self.cascade_deletions = meter.create_counter(
            name="entities.cascade_deleted",
            description="Entities removed, including dependents cleaned up by cascades",
            unit="1",
        )


# Global metrics instance
app_metrics: AppMetrics | None = None


def get_app_metrics() -> AppMetrics:
    """Get the global application metrics instance."""
    global app_metrics
    if app_metrics is None:
        app_metrics = AppMetrics()
    return app_metrics
