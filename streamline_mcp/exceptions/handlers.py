"""
Exception handlers for the application.
"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from streamline_mcp.exceptions import ServiceError, StoreError, to_http_exception, to_mcp_error_response
from streamline_mcp.monitoring import get_request_id

logger = logging.getLogger(__name__)


def _is_mcp_path(request: Request) -> bool:
    return request.url.path == "/mcp" or request.url.path.startswith("/mcp/")


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    """
    request_id = get_request_id() or '-'
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "method": request.method,
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred. Please check the logs for details.",
            "path": request.url.path,
            "method": request.method,
            "request_id": request_id
        }
    )


async def service_exception_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """
    Handler for service errors.
    Returns 200 OK with success: False for MCP endpoints to make errors visible to agents.
    """
    if not exc.request_id:
        exc.request_id = get_request_id() or None

    if isinstance(exc, StoreError):
        logger.error(f"Store error in {request.method} {request.url.path}: {exc.message}", exc_info=True)
    else:
        logger.warning(f"{type(exc).__name__} in {request.method} {request.url.path}: {exc.message}")

    if _is_mcp_path(request):
        return JSONResponse(status_code=200, content=to_mcp_error_response(exc))

    http_exc = to_http_exception(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors with clear messages.
    """
    request_id = get_request_id() or '-'
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")

    logger.warning(f"Validation error in {request.method} {request.url.path}: {', '.join(errors)}")
    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "detail": "One or more fields failed validation",
            "errors": errors,
            "path": request.url.path,
            "method": request.method,
            "request_id": request_id
        }
    )


def setup_exception_handlers(app) -> None:
    """
    Register exception handlers with the FastAPI app.
    """
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(ServiceError, service_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
