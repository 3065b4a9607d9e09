"""Note-related MCP handlers."""

from typing import Optional, List, Dict, Any

from streamline_mcp.mcp.helpers import run_tool, services


def handle_search_notes(
    query: Optional[str] = None,
    tags: Optional[List[str]] = None,
    include_archived: bool = False,
    limit: Optional[int] = None
) -> Dict[str, Any]:
    """
    Search notes by text and tags.

    Returns:
        Dictionary with ``count`` and ``notes``
    """
    return run_tool(
        "search_notes",
        lambda: services().note_service.search_notes(
            query=query,
            tags=tags,
            include_archived=bool(include_archived),
            limit=limit
        ),
        attributes={"mcp.query": query, "mcp.limit": limit}
    )


def handle_read_note(uuid: str) -> Dict[str, Any]:
    return run_tool(
        "read_note",
        lambda: {"note": services().note_service.read_note(uuid)},
        attributes={"mcp.note_id": uuid}
    )


def handle_create_note(content: Optional[str] = None, tags: Optional[List[str]] = None) -> Dict[str, Any]:
    """Create a note; the first line of ``content`` becomes its title."""
    return run_tool(
        "create_note",
        lambda: services().note_service.create_note(content, tags=tags)
    )


def handle_update_note(
    uuid: str,
    content: Optional[str] = None,
    append: Optional[str] = None,
    is_flagged: Optional[bool] = None,
    is_archived: Optional[bool] = None
) -> Dict[str, Any]:
    return run_tool(
        "update_note",
        lambda: services().note_service.update_note(
            uuid,
            content=content,
            append=append,
            is_flagged=is_flagged,
            is_archived=is_archived
        ),
        attributes={"mcp.note_id": uuid}
    )


def handle_delete_note(uuid: str, permanent: bool = False) -> Dict[str, Any]:
    """Move a note to the trash or delete it permanently."""
    return run_tool(
        "delete_note",
        lambda: services().note_service.delete_note(uuid, permanent=bool(permanent)),
        attributes={"mcp.note_id": uuid, "mcp.permanent": bool(permanent)}
    )
