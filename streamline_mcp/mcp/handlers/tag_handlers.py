"""Tag-related MCP handlers."""

from typing import Dict, Any

from streamline_mcp.mcp.helpers import run_tool, services


def handle_list_tags(include_hidden: bool = False) -> Dict[str, Any]:
    """
    List the user's tags.

    Returns:
        Dictionary with ``count`` and ``tags``
    """
    def operation() -> Dict[str, Any]:
        tags = services().tag_service.list_tags(include_hidden=bool(include_hidden))
        return {"count": len(tags), "tags": tags}

    return run_tool("list_tags", operation)


def handle_create_tag(name: str) -> Dict[str, Any]:
    def operation() -> Dict[str, Any]:
        tag = services().tag_service.create_tag(name)
        return {"message": f"Created tag: {tag['name']}"}

    return run_tool("create_tag", operation, attributes={"mcp.tag": name})


def handle_tag_task(uuid: str, tag: str) -> Dict[str, Any]:
    """Add a tag to a task, creating the tag when it does not exist."""
    return run_tool(
        "tag_task",
        lambda: services().task_service.tag_task(uuid, tag),
        attributes={"mcp.task_id": uuid, "mcp.tag": tag}
    )


def handle_untag_task(uuid: str, tag: str) -> Dict[str, Any]:
    """Remove a tag from a task."""
    return run_tool(
        "untag_task",
        lambda: services().task_service.untag_task(uuid, tag),
        attributes={"mcp.task_id": uuid, "mcp.tag": tag}
    )


def handle_tag_note(uuid: str, tag: str) -> Dict[str, Any]:
    """Add a tag to a note, creating the tag when it does not exist."""
    return run_tool(
        "tag_note",
        lambda: services().note_service.tag_note(uuid, tag),
        attributes={"mcp.note_id": uuid, "mcp.tag": tag}
    )


def handle_untag_note(uuid: str, tag: str) -> Dict[str, Any]:
    return run_tool(
        "untag_note",
        lambda: services().note_service.untag_note(uuid, tag),
        attributes={"mcp.note_id": uuid, "mcp.tag": tag}
    )
