"""
Standard exceptions for streamline_mcp.

Services raise these; MCP handlers convert them into structured
``{"success": False, ...}`` responses and the HTTP layer converts them
into HTTPException objects.
"""
from typing import Optional, Dict, Any

from fastapi import HTTPException


class ServiceError(Exception):
    """Base class for all service-level errors."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.context = context or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for logging and API responses."""
        result: Dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.request_id:
            result["request_id"] = self.request_id
        if self.context:
            result["context"] = self.context
        if self.original_error is not None:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error),
            }
        return result


class NotFoundError(ServiceError):
    """A referenced record does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        message: Optional[str] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.resource_type = resource_type
        self.resource_id = str(resource_id)
        ctx = dict(context or {})
        ctx["resource_type"] = resource_type
        ctx["resource_id"] = self.resource_id
        super().__init__(
            message or f"{resource_type} with ID '{self.resource_id}' not found",
            request_id=request_id,
            context=ctx
        )


class ValidationError(ServiceError):
    """Input failed validation; nothing was written."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.field = field
        self.value = value
        ctx = dict(context or {})
        if field is not None:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = str(value)
        super().__init__(message, request_id=request_id, context=ctx)


class StoreError(ServiceError):
    """The remote record store rejected a request or could not be reached."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        self.operation = operation
        self.status_code = status_code
        ctx = dict(context or {})
        if operation is not None:
            ctx["operation"] = operation
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(
            message,
            request_id=request_id,
            context=ctx,
            original_error=original_error
        )


class ConfigError(ServiceError):
    """Store configuration is missing or incomplete."""


class TaskNotFoundError(NotFoundError):
    """Task lookup failed."""

    def __init__(self, task_id: Any, **kwargs):
        super().__init__("Task", task_id, **kwargs)


class NoteNotFoundError(NotFoundError):
    """Note lookup failed, or the note is in the trash."""

    def __init__(self, note_id: Any, **kwargs):
        super().__init__("Note", note_id, **kwargs)


class WorkspaceNotFoundError(NotFoundError):
    def __init__(self, key: Any, **kwargs):
        super().__init__("Workspace", key, **kwargs)


class NotInSeriesError(NotFoundError):
    """UUID resolves to neither a series template nor one of its occurrences."""

    def __init__(self, uuid: Any, **kwargs):
        super().__init__(
            "Series",
            uuid,
            message=f"'{uuid}' is not part of a recurring series",
            **kwargs
        )


class NotRecurringOccurrenceError(ValidationError):
    """Operation requires an occurrence of a recurring series."""

    def __init__(self, task_id: Any, **kwargs):
        super().__init__(
            f"Task '{task_id}' is not a recurring occurrence",
            field="uuid",
            value=task_id,
            **kwargs
        )


class InvalidRecurrenceRuleError(ValidationError):
    """A recurrence rule could not be parsed or validated."""


class SeriesStateError(ValidationError):
    """A series status transition is not allowed from its current status."""


_HTTP_STATUS = (
    (NotFoundError, 404),
    (ValidationError, 422),
    (ConfigError, 500),
    (StoreError, 502),
)

_MCP_CODES = (
    (NotFoundError, -32001),
    (ValidationError, -32602),
    (StoreError, -32603),
)


def to_http_exception(
    exc: ServiceError,
    include_context: bool = True,
    default_status_code: int = 500
) -> HTTPException:
    """Convert a ServiceError into a FastAPI HTTPException."""
    status_code = default_status_code
    for exc_type, code in _HTTP_STATUS:
        if isinstance(exc, exc_type):
            status_code = code
            break

    detail: Dict[str, Any] = {
        "error": type(exc).__name__,
        "message": exc.message,
    }
    if exc.request_id:
        detail["request_id"] = exc.request_id
    if include_context and exc.context:
        detail["context"] = exc.context
    return HTTPException(status_code=status_code, detail=detail)


def to_mcp_error_response(exc: ServiceError) -> Dict[str, Any]:
    """Convert a ServiceError into the structured failure returned by MCP tools."""
    code = -32000
    for exc_type, mcp_code in _MCP_CODES:
        if isinstance(exc, exc_type):
            code = mcp_code
            break

    error: Dict[str, Any] = {
        "code": code,
        "message": exc.message,
        "error_type": type(exc).__name__,
    }
    if exc.request_id:
        error["request_id"] = exc.request_id
    if exc.context:
        error["context"] = exc.context
    return {"success": False, "error": error}
