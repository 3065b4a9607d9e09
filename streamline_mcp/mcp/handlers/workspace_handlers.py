"""Workspace-related MCP handlers."""

from typing import Optional, Dict, Any

from streamline_mcp.mcp.helpers import run_tool, services


def handle_list_workspaces(include_rules: Optional[bool] = None) -> Dict[str, Any]:
    """
    List workspaces, with rule summaries unless ``include_rules`` is false.

    Returns:
        Dictionary with ``count`` and ``workspaces``
    """
    def operation() -> Dict[str, Any]:
        workspaces = services().workspace_service.list_workspaces(include_rules=include_rules is not False)
        return {"count": len(workspaces), "workspaces": workspaces}

    return run_tool("list_workspaces", operation)


def handle_read_workspace(uuid: Optional[str] = None, name: Optional[str] = None) -> Dict[str, Any]:
    return run_tool(
        "read_workspace",
        lambda: {"workspace": services().workspace_service.read_workspace(uuid=uuid, name=name)},
        attributes={"mcp.workspace_id": uuid, "mcp.workspace": name}
    )
