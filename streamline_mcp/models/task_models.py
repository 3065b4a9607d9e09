"""
Pydantic models and record builders for tasks.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator

from streamline_mcp.utils.dates import to_iso

# Tasks without this source id are hidden by the Streamline apps
APP_SOURCE_ID = "00000000-0000-0000-0000-000000000000"

NOTES_PREVIEW_LENGTH = 100


class TaskCreate(BaseModel):
    """Request model for creating a task."""
    name: str = Field(..., description="Task name", min_length=1)
    notes: Optional[str] = Field(None, description="Task notes")
    due_date: Optional[str] = Field(None, description="today, tomorrow, yesterday or ISO date")
    tags: List[str] = Field(default_factory=list, description="Tag names")
    is_urgent: bool = Field(False, description="Urgent alarm flag")
    recurrence: Optional[Dict[str, Any]] = Field(None, description="Recurrence rule")

    @field_validator('name')
    @classmethod
    def validate_not_empty_or_whitespace(cls, v: str) -> str:
        """Validate that name is not empty or only whitespace."""
        if not v or not v.strip():
            raise ValueError("Task name cannot be empty or contain only whitespace")
        return v.strip()

    @field_validator('tags', mode='before')
    @classmethod
    def drop_blank_tags(cls, v: Any) -> List[str]:
        if not v:
            return []
        return [t.strip() for t in v if isinstance(t, str) and t.strip()]


def new_task_record(
    user_id: str,
    name: str,
    notes: Optional[str],
    due_date: Optional[datetime],
    is_urgent: bool,
    now: datetime,
    **extra: Any
) -> Dict[str, Any]:
    """Row for a new task, with the columns the Streamline apps expect."""
    record = {
        "user_id": user_id,
        "name": name,
        "note": notes or None,
        "status": False,
        "due_date": to_iso(due_date),
        "is_urgent_alarm": bool(is_urgent),
        "is_recurring_template": False,
        "is_deleted": False,
        "is_skipped": False,
        "created_at": to_iso(now),
        "updated_at": to_iso(now),
        "source": APP_SOURCE_ID,
    }
    record.update(extra)
    return record


def is_open(task: Dict[str, Any]) -> bool:
    """Not completed, not skipped and not deleted."""
    return not (task.get("status") or task.get("is_skipped") or task.get("is_deleted"))


def drop_empty(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None and v != "" and v != []}
