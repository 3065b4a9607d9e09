"""
Note service - business logic for note operations.
This layer contains no HTTP framework dependencies.
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable

from pydantic import ValidationError as PydanticValidationError

from streamline_mcp.exceptions import NoteNotFoundError, ValidationError
from streamline_mcp.models.note_models import (
    NoteCreate,
    UNTITLED,
    NOTE_PREVIEW_LENGTH,
    content_fields,
    new_note_record,
    truncate_content,
)
from streamline_mcp.models.task_models import drop_empty
from streamline_mcp.services.tag_service import TagService
from streamline_mcp.storage.interface import StoreInterface, NOTES, eq
from streamline_mcp.utils.dates import now_local, to_iso, format_date

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20
FETCH_LIMIT = 100
TAG_FILTER_FETCH_LIMIT = 1000


def _title(note: Dict[str, Any]) -> str:
    return note.get("first_line_clean") or UNTITLED


class NoteService:
    """Service for note business logic."""

    def __init__(
        self,
        store: StoreInterface,
        user_id: str,
        tags: Optional[TagService] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.user_id = user_id
        self.tags = tags or TagService(store, user_id)
        self._clock = clock or now_local

    def _user_filter(self, note_id: str) -> Dict[str, str]:
        return {"id": eq(note_id), "user_id": eq(self.user_id)}

    def get_note(self, note_id: str) -> Dict[str, Any]:
        """
        Get a note row, trashed or not.

        Raises:
            ValidationError: If ``note_id`` is empty
            NoteNotFoundError: If no such note exists for the user
        """
        if not note_id:
            raise ValidationError("UUID required", field="uuid")
        rows = self.store.select(NOTES, self._user_filter(note_id), limit=1)
        if not rows:
            raise NoteNotFoundError(note_id)
        return rows[0]

    def search_notes(
        self,
        query: Optional[str] = None,
        tags: Optional[List[str]] = None,
        include_archived: bool = False,
        limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Search the user's notes, most recently edited first.

        Args:
            query: Case-insensitive text matched against title and content
            tags: Only notes carrying all of these tags
            include_archived: Also return archived notes
            limit: Maximum number of results (default 20)

        Returns:
            Dictionary with ``count`` and ``notes``
        """
        filters = {"user_id": eq(self.user_id), "is_deleted": eq(False)}
        if not include_archived:
            filters["in_archive"] = eq(False)

        tag_names = [t for t in (tags or []) if t]
        fetch_limit = TAG_FILTER_FETCH_LIMIT if tag_names else FETCH_LIMIT
        notes = self.store.select(NOTES, filters, order="updated_at.desc", limit=fetch_limit)

        if query:
            lower = query.lower()
            notes = [
                n for n in notes
                if lower in (n.get("first_line_clean") or "").lower() or lower in (n.get("content") or "").lower()
            ]

        if tag_names:
            tag_ids = self.tags.tag_ids_by_names(tag_names)
            if len(tag_ids) < len(tag_names):
                notes = []
            else:
                note_ids = self.tags.note_ids_with_tags(tag_ids)
                notes = [n for n in notes if n["id"] in note_ids]

        notes = notes[:limit or DEFAULT_SEARCH_LIMIT]
        results = []
        for n in notes:
            result = drop_empty({
                "uuid": n["id"],
                "title": _title(n),
                "preview": (n.get("second_line_clean") or "")[:NOTE_PREVIEW_LENGTH],
                "last_edited": format_date(n.get("updated_at")),
                "word_count": n.get("word_count"),
            })
            result["is_flagged"] = bool(n.get("is_flagged"))
            results.append(result)

        response: Dict[str, Any] = {"count": len(results), "notes": results}
        if not results:
            response["message"] = "No notes found matching your criteria."
        return response

    def read_note(self, note_id: str) -> Dict[str, Any]:
        """
        Full content of a note. Very long content is truncated.

        Raises:
            NoteNotFoundError: Also for notes in the trash
        """
        n = self.get_note(note_id)
        if n.get("trashed_date") or n.get("is_deleted"):
            raise NoteNotFoundError(note_id, message="This note has been deleted.")

        details = drop_empty({
            "uuid": n["id"],
            "title": _title(n),
            "content": truncate_content(n.get("content") or ""),
            "last_edited": format_date(n.get("updated_at")),
            "created": format_date(n.get("created_at")),
            "word_count": n.get("word_count"),
            "tags": self.tags.tag_names_for_note(n["id"]),
        })
        details.setdefault("content", "")
        details["is_flagged"] = bool(n.get("is_flagged"))
        details["is_archived"] = bool(n.get("in_archive"))
        return details

    def create_note(self, content: Optional[str] = None, tags: Optional[List[str]] = None) -> Dict[str, Any]:
        """Create a note; its first line becomes the title."""
        try:
            request = NoteCreate(content=content, tags=tags or [])
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or None
            raise ValidationError(first.get("msg", str(e)), field=field) from e

        note = self.store.insert(NOTES, new_note_record(self.user_id, request.content, self._clock()))
        if request.tags:
            self.tags.link_note_tags(note["id"], self.tags.get_or_create_tag_ids(request.tags))

        title = _title(note)
        logger.info(f"Created note {note['id']}")
        return {"uuid": note["id"], "title": title, "message": f"Created note: {title}"}

    def update_note(
        self,
        note_id: str,
        content: Optional[str] = None,
        append: Optional[str] = None,
        is_flagged: Optional[bool] = None,
        is_archived: Optional[bool] = None
    ) -> Dict[str, Any]:
        """
        Update a note.

        ``content`` replaces the text; ``append`` adds a paragraph after it.
        When both are given the paragraph is appended to the new content.
        """
        note = self.get_note(note_id)

        updates: Dict[str, Any] = {"updated_at": to_iso(self._clock())}
        text = note.get("content") or ""
        if content is not None:
            text = content
        if append is not None:
            text = f"{text}\n\n{append}"
        if content is not None or append is not None:
            updates.update(content_fields(text))
        if is_flagged is not None:
            updates["is_flagged"] = bool(is_flagged)
        if is_archived is not None:
            updates["in_archive"] = bool(is_archived)

        self.store.update(NOTES, self._user_filter(note_id), updates)
        return {"uuid": note["id"], "message": "Note updated successfully"}

    def delete_note(self, note_id: str, permanent: bool = False) -> Dict[str, Any]:
        """Move a note to the trash, or remove it and its tag links for good."""
        note = self.get_note(note_id)
        if permanent:
            self.tags.unlink_all_from_note(note_id)
            self.store.delete(NOTES, self._user_filter(note_id))
            action = "permanently deleted"
        else:
            now = to_iso(self._clock())
            self.store.update(NOTES, self._user_filter(note_id), {
                "trashed_date": now,
                "is_deleted": True,
                "updated_at": now,
            })
            action = "moved to trash"
        return {"message": f"Note '{_title(note)}' {action}"}

    def tag_note(self, note_id: str, tag_name: str) -> Dict[str, Any]:
        """Add a tag (created when missing) to a note."""
        if not tag_name or not tag_name.strip():
            raise ValidationError("Tag name and UUID required", field="tag")
        note = self.get_note(note_id)
        tag_ids = self.tags.get_or_create_tag_ids([tag_name.strip()])
        if not self.tags.link_note_tags(note["id"], tag_ids):
            return {"message": f"Tag '{tag_name}' already assigned to note"}
        return {"message": f"Added tag '{tag_name}' to note"}

    def untag_note(self, note_id: str, tag_name: str) -> Dict[str, Any]:
        if not tag_name or not tag_name.strip():
            raise ValidationError("Tag name and UUID required", field="tag")
        note = self.get_note(note_id)
        self.tags.unlink_note_tag(note["id"], tag_name.strip())
        return {"message": f"Removed tag '{tag_name}' from note"}
