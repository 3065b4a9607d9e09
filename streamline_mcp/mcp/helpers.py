"""Helper functions for MCP tool handlers."""

import logging
from typing import Callable, Dict, Any, Optional

from streamline_mcp.dependencies.services import get_services, ServiceContainer
from streamline_mcp.exceptions import ServiceError, StoreError, to_mcp_error_response
from streamline_mcp.monitoring import record_tool_call, get_request_id
from streamline_mcp.tracing import trace_span, add_span_attribute

logger = logging.getLogger(__name__)


def services() -> ServiceContainer:
    return get_services()


def run_tool(
    tool: str,
    operation: Callable[[], Dict[str, Any]],
    attributes: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Run a service call for an MCP tool and shape the structured result.

    Service errors become ``{"success": False, "error": {...}}``; anything
    else propagates to the JSON-RPC layer.

    Args:
        tool: Tool name, used for the span and metrics
        operation: Zero-argument callable returning the result payload
        attributes: Extra span attributes

    Returns:
        ``{"success": True, **payload}`` or the structured failure
    """
    with trace_span(f"mcp.{tool}", attributes=attributes):
        try:
            payload = operation()
        except StoreError as e:
            logger.error(f"{tool} failed in the record store: {e.message}", exc_info=True)
            return _failure(tool, e)
        except ServiceError as e:
            logger.info(f"{tool} rejected: {e.message}")
            return _failure(tool, e)

        add_span_attribute("mcp.success", True)
        record_tool_call(tool, True)
        return {"success": True, **payload}


def _failure(tool: str, error: ServiceError) -> Dict[str, Any]:
    add_span_attribute("mcp.success", False)
    add_span_attribute("mcp.error", type(error).__name__)
    record_tool_call(tool, False)
    if not error.request_id:
        error.request_id = get_request_id() or None
    return to_mcp_error_response(error)
