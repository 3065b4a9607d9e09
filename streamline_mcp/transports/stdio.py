"""
Stdio transport: one JSON-RPC message per line on stdin, responses on stdout.

Nothing else may be written to stdout; logging goes to stderr.
"""
import json
import logging
import sys
from typing import TextIO, Optional

from streamline_mcp.mcp.request_handlers import handle_jsonrpc_request
from streamline_mcp.monitoring import new_request_id

logger = logging.getLogger(__name__)


def handle_line(line: str) -> Optional[str]:
    """
    Process one input line.

    Returns:
        Serialized response, or None when there is nothing to send back
    """
    line = line.strip()
    if not line:
        return None
    new_request_id()

    try:
        request = json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning(f"Discarding unparseable message: {e}")
        return json.dumps({
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": -32700, "message": f"Parse error: {e}"}
        })

    if not isinstance(request, dict):
        return json.dumps({
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": -32600, "message": "Invalid Request"}
        })

    try:
        response = handle_jsonrpc_request(request)
    except Exception as e:
        logger.error("Unhandled error while dispatching message", exc_info=True)
        return json.dumps({
            "jsonrpc": "2.0",
            "id": request.get("id"),
            "error": {"code": -32603, "message": f"Internal error: {e}"}
        })
    if response is None:
        return None
    return json.dumps(response)


def serve(stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
    """Serve until stdin is closed."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    logger.info("Streamline MCP server running on stdio")

    for line in stdin:
        response = handle_line(line)
        if response is not None:
            stdout.write(response + "\n")
            stdout.flush()

    logger.info("stdin closed, shutting down")
