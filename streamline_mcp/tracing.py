"""
Distributed tracing using OpenTelemetry.

Tracing is off unless ``OTEL_TRACING_ENABLED=true``; until then spans go to
the OpenTelemetry no-op provider, so ``trace_span`` is always safe to use.
"""
import os
import logging
from typing import Optional, Dict, Any
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from streamline_mcp import __version__

logger = logging.getLogger(__name__)

_initialized = False
_service_name = os.getenv("OTEL_SERVICE_NAME", "streamline-mcp")


def tracing_enabled() -> bool:
    return os.getenv("OTEL_TRACING_ENABLED", "false").lower() == "true"


def setup_tracing() -> None:
    """Initialize OpenTelemetry tracing with the exporters selected by environment."""
    global _initialized

    if _initialized:
        logger.warning("Tracing already initialized")
        return

    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    use_otlp = os.getenv("OTEL_EXPORTER_OTLP_ENABLED", "true").lower() == "true"
    enable_console = os.getenv("OTEL_CONSOLE_EXPORTER_ENABLED", "false").lower() == "true"

    resource = Resource.create({
        "service.name": _service_name,
        "service.version": __version__,
        "deployment.environment": os.getenv("ENVIRONMENT", "development"),
    })
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    if use_otlp:
        try:
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))
            logger.info(f"OTLP exporter configured ({otlp_endpoint})")
        except Exception:
            logger.warning("Failed to configure OTLP exporter", exc_info=True)

    if enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console exporter enabled")

    _initialized = True
    logger.info("OpenTelemetry tracing initialized")


def instrument_fastapi(app) -> None:
    """Instrument a FastAPI application."""
    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception:
        logger.error("Failed to instrument FastAPI", exc_info=True)


def instrument_httpx() -> None:
    """Instrument outgoing httpx requests to the record store."""
    try:
        HTTPXClientInstrumentor().instrument()
        logger.info("HTTPX instrumentation enabled")
    except Exception:
        logger.error("Failed to instrument HTTPX", exc_info=True)


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(__name__)


def _set_attribute(span, key: str, value: Any) -> None:
    if isinstance(value, (str, int, float, bool)):
        span.set_attribute(key, value)
    else:
        span.set_attribute(key, str(value))


@contextmanager
def trace_span(
    name: str,
    attributes: Optional[Dict[str, Any]] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL
):
    """
    Context manager for creating a trace span.

    Example:
        with trace_span("series.complete", {"series.id": series_id}):
            ...
    """
    with get_tracer().start_as_current_span(name, kind=kind) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                _set_attribute(span, key, value)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise


def add_span_attribute(key: str, value: Any) -> None:
    """Add an attribute to the current active span."""
    span = trace.get_current_span()
    if span is not None and value is not None:
        _set_attribute(span, key, value)
