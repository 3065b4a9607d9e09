"""Recurring series MCP handlers.

Every handler accepts either the uuid of the series template or of one of
its occurrences, except ``skip_task`` which needs an occurrence.
"""

from typing import Dict, Any, Optional

from streamline_mcp.exceptions import ValidationError
from streamline_mcp.mcp.helpers import run_tool, services
from streamline_mcp.services.series_service import DEFAULT_PREVIEW_COUNT

MAX_PREVIEW_COUNT = 50


def _require_uuid(uuid: Optional[str]) -> str:
    if not uuid:
        raise ValidationError("UUID required", field="uuid")
    return uuid


def handle_skip_task(uuid: str) -> Dict[str, Any]:
    """
    Skip the open occurrence of a recurring task.

    Args:
        uuid: Occurrence uuid

    Returns:
        Lifecycle result with ``next_occurrence`` when one was generated
    """
    return run_tool(
        "skip_task",
        lambda: services().series_service.skip_occurrence(_require_uuid(uuid)),
        attributes={"mcp.task_id": uuid}
    )


def handle_pause_recurrence(uuid: str) -> Dict[str, Any]:
    return run_tool(
        "pause_recurrence",
        lambda: services().series_service.pause_series(_require_uuid(uuid)),
        attributes={"mcp.task_id": uuid}
    )


def handle_resume_recurrence(uuid: str) -> Dict[str, Any]:
    """Resume a paused series, generating an occurrence when none is open."""
    return run_tool(
        "resume_recurrence",
        lambda: services().series_service.resume_series(_require_uuid(uuid)),
        attributes={"mcp.task_id": uuid}
    )


def handle_end_recurrence(uuid: str) -> Dict[str, Any]:
    return run_tool(
        "end_recurrence",
        lambda: services().series_service.end_series(_require_uuid(uuid)),
        attributes={"mcp.task_id": uuid}
    )


def handle_read_recurrence(uuid: str, preview_count: Optional[int] = None) -> Dict[str, Any]:
    """
    Describe a recurring series.

    Returns:
        Dictionary with status, rule, summary, open occurrence and upcoming dates
    """
    count = max(0, min(DEFAULT_PREVIEW_COUNT if preview_count is None else preview_count, MAX_PREVIEW_COUNT))
    return run_tool(
        "read_recurrence",
        lambda: {"series": services().series_service.read_series(_require_uuid(uuid), preview_count=count)},
        attributes={"mcp.task_id": uuid}
    )
