"""
Monitoring and observability utilities.

Provides:
- Prometheus metrics (HTTP requests, tool calls, recurrence activity)
- Request IDs for log correlation
- Health information
"""
import re
import time
import uuid
import logging
from typing import Callable, Dict, Any
from contextvars import ContextVar

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from prometheus_client import Counter, Histogram, Gauge, generate_latest

request_id_var: ContextVar[str] = ContextVar('request_id', default='')

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

mcp_tool_calls_total = Counter(
    'mcp_tool_calls_total',
    'Total number of MCP tool calls',
    ['tool', 'outcome']
)

recurrence_occurrences_generated_total = Counter(
    'recurrence_occurrences_generated_total',
    'Occurrences created for recurring series',
    ['trigger']
)

recurrence_series_transitions_total = Counter(
    'recurrence_series_transitions_total',
    'Recurring series status transitions',
    ['status']
)

recurrence_rule_errors_total = Counter(
    'recurrence_rule_errors_total',
    'Series templates whose stored rule could not be parsed'
)

service_uptime_seconds = Gauge(
    'service_uptime_seconds',
    'Service uptime in seconds'
)

service_start_time = time.time()

logger = logging.getLogger(__name__)

_UUID_PATTERN = re.compile(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', re.IGNORECASE)


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_var.get('')


def set_request_id(request_id: str) -> None:
    """Set the request ID in context."""
    request_id_var.set(request_id)


def new_request_id() -> str:
    request_id = str(uuid.uuid4())[:8]
    set_request_id(request_id)
    return request_id


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware for collecting Prometheus metrics and request IDs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = new_request_id()
        endpoint = _UUID_PATTERN.sub('{id}', request.url.path)[:100]
        start_time = time.time()
        service_uptime_seconds.set(time.time() - service_start_time)

        try:
            response = await call_next(request)
        except Exception:
            duration = time.time() - start_time
            http_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            ).inc()
            logger.error(
                f"{request.method} {request.url.path} failed after {duration:.3f}s",
                exc_info=True
            )
            raise

        duration = time.time() - start_time
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code
        ).observe(duration)

        if response.status_code >= 400:
            logger.warning(f"{request.method} {request.url.path} returned {response.status_code}")

        response.headers["X-Request-ID"] = request_id
        return response


def record_tool_call(tool: str, success: bool) -> None:
    mcp_tool_calls_total.labels(tool=tool, outcome="success" if success else "failure").inc()


def get_metrics() -> str:
    """Get Prometheus metrics in text format."""
    return generate_latest().decode('utf-8')


def get_health_info(store_kind: str = "unknown") -> Dict[str, Any]:
    """Health information including uptime and the configured store backend."""
    uptime = time.time() - service_start_time
    return {
        "status": "healthy",
        "service": "streamline-mcp",
        "timestamp": time.time(),
        "uptime_seconds": uptime,
        "uptime_formatted": _format_uptime(uptime),
        "components": {
            "store": {"type": store_kind},
        },
    }


def _format_uptime(seconds: float) -> str:
    """Format uptime in human-readable format."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m {secs}s"
    elif hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    elif minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
