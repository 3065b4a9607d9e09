"""Task-related MCP handlers."""

from typing import Optional, List, Dict, Any

from streamline_mcp.mcp.helpers import run_tool, services


def handle_search_tasks(
    query: Optional[str] = None,
    tags: Optional[List[str]] = None,
    include_completed: bool = False,
    due_before: Optional[str] = None,
    due_after: Optional[str] = None,
    limit: Optional[int] = None
) -> Dict[str, Any]:
    """
    Search tasks by text, tags and due date.

    Returns:
        Dictionary with ``count`` and ``tasks``
    """
    return run_tool(
        "search_tasks",
        lambda: services().task_service.search_tasks(
            query=query,
            tags=tags,
            include_completed=bool(include_completed),
            due_before=due_before,
            due_after=due_after,
            limit=limit
        ),
        attributes={"mcp.query": query, "mcp.limit": limit}
    )


def handle_read_task(uuid: str) -> Dict[str, Any]:
    """Get full details of a task."""
    return run_tool(
        "read_task",
        lambda: {"task": services().task_service.read_task(uuid)},
        attributes={"mcp.task_id": uuid}
    )


def handle_create_task(
    name: str,
    notes: Optional[str] = None,
    due_date: Optional[str] = None,
    tags: Optional[List[str]] = None,
    is_urgent: bool = False,
    recurrence: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Create a task, or a recurring series when ``recurrence`` is given.

    Returns:
        Dictionary with the new task uuid and success status
    """
    return run_tool(
        "create_task",
        lambda: services().task_service.create_task(
            name,
            notes=notes,
            due_date=due_date,
            tags=tags,
            is_urgent=bool(is_urgent),
            recurrence=recurrence
        ),
        attributes={"mcp.recurring": recurrence is not None}
    )


def handle_update_task(
    uuid: str,
    name: Optional[str] = None,
    notes: Optional[str] = None,
    due_date: Optional[str] = None,
    is_urgent: Optional[bool] = None
) -> Dict[str, Any]:
    return run_tool(
        "update_task",
        lambda: services().task_service.update_task(
            uuid, name=name, notes=notes, due_date=due_date, is_urgent=is_urgent
        ),
        attributes={"mcp.task_id": uuid}
    )


def handle_complete_task(uuid: str, completed: bool = True) -> Dict[str, Any]:
    """
    Mark a task completed (default) or not completed.

    Completing an occurrence of an active recurring series creates the next
    occurrence; details are returned under ``recurrence``.
    """
    return run_tool(
        "complete_task",
        lambda: services().task_service.complete_task(uuid, completed=completed is not False),
        attributes={"mcp.task_id": uuid, "mcp.completed": completed is not False}
    )


def handle_delete_task(uuid: str, permanent: bool = False) -> Dict[str, Any]:
    return run_tool(
        "delete_task",
        lambda: services().task_service.delete_task(uuid, permanent=bool(permanent)),
        attributes={"mcp.task_id": uuid, "mcp.permanent": bool(permanent)}
    )
