"""
Application factory - creates and configures the FastAPI application.
This isolates all initialization logic from main.py.
"""
import os
import sys
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from streamline_mcp import __version__
from streamline_mcp.api.routes.mcp import router as mcp_router
from streamline_mcp.dependencies.services import get_services
from streamline_mcp.exceptions.handlers import setup_exception_handlers
from streamline_mcp.monitoring import MetricsMiddleware, get_metrics, get_health_info, get_request_id
from streamline_mcp.tracing import tracing_enabled, setup_tracing, instrument_fastapi, instrument_httpx

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - %(message)s'


class RequestIDFilter(logging.Filter):
    """Filter to add request ID to log records."""

    def filter(self, record):
        record.request_id = get_request_id() or '-'
        return True


class SafeFormatter(logging.Formatter):
    def format(self, record):
        if not hasattr(record, 'request_id'):
            record.request_id = '-'
        return super().format(record)


def setup_logging(level: Optional[str] = None) -> None:
    """
    Setup structured logging with request ID support.

    Logs go to stderr so the stdio transport keeps stdout for protocol messages.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(RequestIDFilter())
    handler.setFormatter(SafeFormatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[handler],
        force=True
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def enable_tracing(app: Optional[FastAPI] = None) -> None:
    """Set up tracing and instrumentation when OTEL_TRACING_ENABLED is set."""
    if not tracing_enabled():
        return
    setup_tracing()
    if app is not None:
        instrument_fastapi(app)
    instrument_httpx()


@asynccontextmanager
async def lifespan(app):
    """Manage application lifespan."""
    logger = logging.getLogger(__name__)
    logger.info("Application starting up...")

    services = get_services()
    logger.info(f"Services initialized ({services.store_kind} store)")

    yield

    logger.info("Application shutting down...")
    services.close()
    logger.info("Shutdown complete")


def create_app(configure_logging: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance ready to run.
    """
    if configure_logging:
        setup_logging()

    app = FastAPI(
        title="Streamline MCP",
        description="MCP server for Streamline tasks and recurring series",
        version=__version__,
        lifespan=lifespan
    )
    app.add_middleware(MetricsMiddleware)
    setup_exception_handlers(app)
    app.include_router(mcp_router)
    enable_tracing(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint with store backend information."""
        try:
            store_kind = get_services().store_kind
        except Exception:
            logging.getLogger(__name__).error("Service container unavailable", exc_info=True)
            return JSONResponse(
                content={**get_health_info(), "status": "unhealthy"},
                status_code=503
            )
        return get_health_info(store_kind)

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=get_metrics(),
            media_type=CONTENT_TYPE_LATEST
        )

    return app
