"""Request handlers for JSON-RPC requests."""

import json
import logging
import traceback
from typing import Dict, Any, Optional, Callable

from streamline_mcp import __version__
from streamline_mcp.mcp.functions import MCP_FUNCTIONS
from streamline_mcp.mcp.handlers import (
    task_handlers,
    note_handlers,
    tag_handlers,
    recurring_handlers,
    workspace_handlers,
)
from streamline_mcp.monitoring import record_tool_call

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "streamline-mcp"


def build_tool_map(arguments: Dict[str, Any]) -> Dict[str, Callable[[], Dict[str, Any]]]:
    """Map tool names to handler calls bound to ``arguments``."""
    return {
        "search_tasks": lambda: task_handlers.handle_search_tasks(
            query=arguments.get("query"),
            tags=arguments.get("tags"),
            include_completed=arguments.get("include_completed", False),
            due_before=arguments.get("due_before"),
            due_after=arguments.get("due_after"),
            limit=arguments.get("limit")
        ),
        "read_task": lambda: task_handlers.handle_read_task(arguments.get("uuid")),
        "create_task": lambda: task_handlers.handle_create_task(
            arguments.get("name"),
            notes=arguments.get("notes"),
            due_date=arguments.get("due_date"),
            tags=arguments.get("tags"),
            is_urgent=arguments.get("is_urgent", False),
            recurrence=arguments.get("recurrence")
        ),
        "update_task": lambda: task_handlers.handle_update_task(
            arguments.get("uuid"),
            name=arguments.get("name"),
            notes=arguments.get("notes"),
            due_date=arguments.get("due_date"),
            is_urgent=arguments.get("is_urgent")
        ),
        "complete_task": lambda: task_handlers.handle_complete_task(
            arguments.get("uuid"),
            arguments.get("completed", True)
        ),
        "delete_task": lambda: task_handlers.handle_delete_task(
            arguments.get("uuid"),
            arguments.get("permanent", False)
        ),
        "search_notes": lambda: note_handlers.handle_search_notes(
            query=arguments.get("query"),
            tags=arguments.get("tags"),
            include_archived=arguments.get("include_archived", False),
            limit=arguments.get("limit")
        ),
        "read_note": lambda: note_handlers.handle_read_note(arguments.get("uuid")),
        "create_note": lambda: note_handlers.handle_create_note(
            arguments.get("content"),
            tags=arguments.get("tags")
        ),
        "update_note": lambda: note_handlers.handle_update_note(
            arguments.get("uuid"),
            content=arguments.get("content"),
            append=arguments.get("append"),
            is_flagged=arguments.get("is_flagged"),
            is_archived=arguments.get("is_archived")
        ),
        "delete_note": lambda: note_handlers.handle_delete_note(
            arguments.get("uuid"),
            arguments.get("permanent", False)
        ),
        "list_tags": lambda: tag_handlers.handle_list_tags(arguments.get("include_hidden", False)),
        "create_tag": lambda: tag_handlers.handle_create_tag(arguments.get("name")),
        "tag_task": lambda: tag_handlers.handle_tag_task(arguments.get("uuid"), arguments.get("tag")),
        "untag_task": lambda: tag_handlers.handle_untag_task(arguments.get("uuid"), arguments.get("tag")),
        "tag_note": lambda: tag_handlers.handle_tag_note(arguments.get("uuid"), arguments.get("tag")),
        "untag_note": lambda: tag_handlers.handle_untag_note(arguments.get("uuid"), arguments.get("tag")),
        "list_workspaces": lambda: workspace_handlers.handle_list_workspaces(arguments.get("include_rules")),
        "read_workspace": lambda: workspace_handlers.handle_read_workspace(
            uuid=arguments.get("uuid"),
            name=arguments.get("name")
        ),
        "skip_task": lambda: recurring_handlers.handle_skip_task(arguments.get("uuid")),
        "pause_recurrence": lambda: recurring_handlers.handle_pause_recurrence(arguments.get("uuid")),
        "resume_recurrence": lambda: recurring_handlers.handle_resume_recurrence(arguments.get("uuid")),
        "end_recurrence": lambda: recurring_handlers.handle_end_recurrence(arguments.get("uuid")),
        "read_recurrence": lambda: recurring_handlers.handle_read_recurrence(
            arguments.get("uuid"),
            arguments.get("preview_count")
        ),
    }


def list_tools() -> list:
    tools = []
    for func_def in MCP_FUNCTIONS:
        parameters = func_def.get("parameters", {})
        tools.append({
            "name": func_def["name"],
            "description": func_def["description"],
            "inputSchema": {
                "type": "object",
                "properties": parameters,
                "required": [k for k, v in parameters.items() if v.get("optional") is not True]
            }
        })
    return tools


def _error(jsonrpc: str, request_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": jsonrpc, "id": request_id, "error": error}


def handle_jsonrpc_request(request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Handle JSON-RPC 2.0 request.

    Args:
        request: JSON-RPC request dictionary

    Returns:
        JSON-RPC response dictionary, or None for notifications
    """
    jsonrpc = request.get("jsonrpc", "2.0")
    request_id = request.get("id")
    method = request.get("method")
    params = request.get("params")

    if isinstance(method, str) and method.startswith("notifications/"):
        logger.debug(f"Ignoring notification {method}")
        return None

    if params is None:
        params = {}
    if not isinstance(params, dict):
        return _error(jsonrpc, request_id, -32602, "Invalid params: expected an object")

    if method == "initialize":
        return {
            "jsonrpc": jsonrpc,
            "id": request_id,
            "result": {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {
                    "name": SERVER_NAME,
                    "version": __version__
                }
            }
        }
    elif method == "tools/list":
        return {"jsonrpc": jsonrpc, "id": request_id, "result": {"tools": list_tools()}}
    elif method == "prompts/list":
        # No prompts are exposed
        return {"jsonrpc": jsonrpc, "id": request_id, "result": {"prompts": []}}
    elif method == "resources/list":
        # No resources are exposed
        return {"jsonrpc": jsonrpc, "id": request_id, "result": {"resources": []}}
    elif method == "ping":
        return {"jsonrpc": jsonrpc, "id": request_id, "result": {}}
    elif method == "tools/call":
        tool_name = params.get("name")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return _error(jsonrpc, request_id, -32602, "Invalid params: arguments must be an object")

        tool_map = build_tool_map(arguments)
        if not isinstance(tool_name, str) or tool_name not in tool_map:
            return _error(jsonrpc, request_id, -32601, f"Method not found: {tool_name}")

        try:
            result = tool_map[tool_name]()
        except Exception as e:
            logger.error(f"Tool {tool_name} failed", exc_info=True)
            record_tool_call(tool_name, False)
            return _error(jsonrpc, request_id, -32603, f"Internal error: {str(e)}", traceback.format_exc())

        return {
            "jsonrpc": jsonrpc,
            "id": request_id,
            "result": {
                "content": [
                    {
                        "type": "text",
                        "text": json.dumps(result, indent=2, default=str)
                    }
                ],
                "isError": result.get("success") is False
            }
        }
    else:
        return _error(jsonrpc, request_id, -32601, f"Method not found: {method}")
