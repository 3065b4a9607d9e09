"""
MCP (Model Context Protocol) API routes.
"""
from typing import Optional, Dict, Any

from fastapi import APIRouter, Body, HTTPException, Response, status

from streamline_mcp.mcp.functions import MCP_FUNCTIONS
from streamline_mcp.mcp.request_handlers import handle_jsonrpc_request, build_tool_map

router = APIRouter(prefix="/mcp", tags=["mcp"])


@router.get("/functions")
async def mcp_functions():
    """List all available MCP functions."""
    return {"functions": MCP_FUNCTIONS}


@router.post("")
def mcp_jsonrpc(request: Dict[str, Any] = Body(...)):
    """Generic JSON-RPC 2.0 endpoint for MCP."""
    result = handle_jsonrpc_request(request)
    if result is None:
        return Response(status_code=status.HTTP_202_ACCEPTED)
    return result


@router.post("/tools/{tool_name}")
def mcp_call_tool(tool_name: str, arguments: Optional[Dict[str, Any]] = Body(None)):
    """MCP: Call one tool directly with its arguments as the JSON body."""
    tool_map = build_tool_map(arguments or {})
    if tool_name not in tool_map:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {tool_name}")
    return tool_map[tool_name]()
