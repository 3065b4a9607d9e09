"""
Pydantic models and record builders for notes.

Notes are markdown documents. The Streamline apps list them by the
denormalized ``first_line_clean``/``second_line_clean`` columns, so every
write that changes ``content`` recomputes those and ``word_count``.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator

from streamline_mcp.utils.dates import to_iso

UNTITLED = "Untitled"
NOTE_PREVIEW_LENGTH = 150
MAX_NOTE_CONTENT = 50000
TRUNCATION_MARKER = "\n\n[Truncated]"


class NoteCreate(BaseModel):
    """Request model for creating a note."""
    content: str = Field("", description="Note content in markdown")
    tags: List[str] = Field(default_factory=list, description="Tag names")

    @field_validator('content', mode='before')
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('tags', mode='before')
    @classmethod
    def drop_blank_tags(cls, v: Any) -> List[str]:
        if not v:
            return []
        return [t.strip() for t in v if isinstance(t, str) and t.strip()]


def word_count(content: str) -> int:
    return len(content.split())


def content_fields(content: str) -> Dict[str, Any]:
    """Columns derived from a note's content."""
    lines = content.split("\n")
    first_line = lines[0].strip() or UNTITLED
    second_line: Optional[str] = None
    for line in lines[1:]:
        if line.strip():
            second_line = line.strip()
            break
    return {
        "content": content,
        "first_line_clean": first_line,
        "second_line_clean": second_line,
        "word_count": word_count(content),
    }


def new_note_record(user_id: str, content: str, now: datetime) -> Dict[str, Any]:
    record = {
        "user_id": user_id,
        "created_at": to_iso(now),
        "updated_at": to_iso(now),
        "is_flagged": False,
        "in_archive": False,
        "is_deleted": False,
    }
    record.update(content_fields(content))
    return record


def truncate_content(content: str) -> str:
    if len(content) > MAX_NOTE_CONTENT:
        return content[:MAX_NOTE_CONTENT] + TRUNCATION_MARKER
    return content
