"""
Unit tests for NoteService.
Tests business logic in isolation without HTTP framework dependencies.
"""
from unittest.mock import MagicMock

import pytest

from streamline_mcp.exceptions import NoteNotFoundError, NotFoundError, StoreError, ValidationError
from streamline_mcp.models.note_models import MAX_NOTE_CONTENT, content_fields, truncate_content
from streamline_mcp.services.note_service import NoteService
from streamline_mcp.storage.interface import NOTES, NOTE_TAGS, eq


class TestContentFields:
    def test_title_preview_and_word_count(self):
        fields = content_fields("# Groceries\n\n  eggs and milk  \nbread")

        assert fields["first_line_clean"] == "# Groceries"
        assert fields["second_line_clean"] == "eggs and milk"
        assert fields["word_count"] == 6

    def test_empty_content_is_untitled(self):
        fields = content_fields("")

        assert fields["first_line_clean"] == "Untitled"
        assert fields["second_line_clean"] is None
        assert fields["word_count"] == 0

    def test_truncation(self):
        long_text = "x" * (MAX_NOTE_CONTENT + 10)

        assert truncate_content(long_text).endswith("\n\n[Truncated]")
        assert truncate_content("short") == "short"


class TestCreateNote:
    def test_create_with_tags(self, note_service, tag_service, store):
        # Execute
        result = note_service.create_note("Trip ideas\nLisbon in May", tags=["travel", " "])

        # Verify
        assert result["title"] == "Trip ideas"
        assert result["message"] == "Created note: Trip ideas"
        row = store.select(NOTES, {"id": eq(result["uuid"])})[0]
        assert row["user_id"] == "user-1"
        assert row["word_count"] == 5
        assert row["in_archive"] is False
        assert row["created_at"] == "2025-02-03T09:00:00+00:00"
        assert tag_service.tag_names_for_note(result["uuid"]) == ["travel"]

    def test_create_without_content(self, note_service):
        assert note_service.create_note()["title"] == "Untitled"


class TestSearchNotes:
    def test_search_by_text_newest_first(self, note_service, clock):
        # Setup
        first = note_service.create_note("Meeting notes\nBudget review")
        clock.advance(hours=1)
        second = note_service.create_note("Budget 2025")
        note_service.create_note("Unrelated")

        # Execute
        result = note_service.search_notes(query="budget")

        # Verify
        assert [n["uuid"] for n in result["notes"]] == [second["uuid"], first["uuid"]]
        assert result["notes"][1]["preview"] == "Budget review"
        assert result["notes"][0]["last_edited"] == "Feb 3, 2025"

    def test_archived_and_trashed_notes_are_hidden(self, note_service):
        # Setup
        archived = note_service.create_note("Old plan")
        trashed = note_service.create_note("Old draft")
        note_service.update_note(archived["uuid"], is_archived=True)
        note_service.delete_note(trashed["uuid"])

        # Execute
        default = note_service.search_notes(query="old")
        with_archive = note_service.search_notes(query="old", include_archived=True)

        # Verify
        assert default["count"] == 0
        assert default["message"] == "No notes found matching your criteria."
        assert [n["uuid"] for n in with_archive["notes"]] == [archived["uuid"]]

    def test_tag_filter_requires_every_tag(self, note_service):
        both = note_service.create_note("Both", tags=["a", "b"])
        note_service.create_note("Only a", tags=["a"])

        assert [n["uuid"] for n in note_service.search_notes(tags=["a", "b"])["notes"]] == [both["uuid"]]
        assert note_service.search_notes(tags=["a", "nope"])["count"] == 0

    def test_limit(self, note_service):
        for i in range(3):
            note_service.create_note(f"Note {i}")

        assert note_service.search_notes(limit=2)["count"] == 2


class TestReadNote:
    def test_read(self, note_service):
        created = note_service.create_note("Recipe\nFlour, water", tags=["kitchen"])

        note = note_service.read_note(created["uuid"])

        assert note["title"] == "Recipe"
        assert note["content"] == "Recipe\nFlour, water"
        assert note["tags"] == ["kitchen"]
        assert note["is_flagged"] is False
        assert note["is_archived"] is False
        assert note["created"] == "Feb 3, 2025"

    def test_requires_uuid(self, note_service):
        with pytest.raises(ValidationError):
            note_service.read_note("")

    def test_not_found(self, note_service):
        with pytest.raises(NoteNotFoundError) as exc_info:
            note_service.read_note("missing")
        assert isinstance(exc_info.value, NotFoundError)

    def test_trashed_note(self, note_service):
        created = note_service.create_note("Gone")
        note_service.delete_note(created["uuid"])

        with pytest.raises(NoteNotFoundError, match="has been deleted"):
            note_service.read_note(created["uuid"])


class TestUpdateNote:
    def test_replace_content_recomputes_title(self, note_service, store, clock):
        # Setup
        created = note_service.create_note("Draft")
        clock.advance(days=1)

        # Execute
        note_service.update_note(created["uuid"], content="Final\nReady to send")

        # Verify
        row = store.select(NOTES, {"id": eq(created["uuid"])})[0]
        assert row["first_line_clean"] == "Final"
        assert row["second_line_clean"] == "Ready to send"
        assert row["word_count"] == 4
        assert row["updated_at"] == "2025-02-04T09:00:00+00:00"

    def test_append(self, note_service):
        created = note_service.create_note("Log")

        note_service.update_note(created["uuid"], append="Day one")

        assert note_service.read_note(created["uuid"])["content"] == "Log\n\nDay one"

    def test_content_and_append_together(self, note_service):
        created = note_service.create_note("Old")

        note_service.update_note(created["uuid"], content="New", append="More")

        assert note_service.read_note(created["uuid"])["content"] == "New\n\nMore"

    def test_flags_only_leave_content(self, note_service):
        created = note_service.create_note("Keep me")

        note_service.update_note(created["uuid"], is_flagged=True)

        note = note_service.read_note(created["uuid"])
        assert note["content"] == "Keep me"
        assert note["is_flagged"] is True


class TestDeleteNote:
    def test_trash(self, note_service, store):
        created = note_service.create_note("Scratch")

        result = note_service.delete_note(created["uuid"])

        assert result == {"message": "Note 'Scratch' moved to trash"}
        row = store.select(NOTES, {"id": eq(created["uuid"])})[0]
        assert row["is_deleted"] is True
        assert row["trashed_date"] == "2025-02-03T09:00:00+00:00"

    def test_permanent_delete_removes_row_and_links(self, note_service, store):
        created = note_service.create_note("Secret", tags=["private"])

        result = note_service.delete_note(created["uuid"], permanent=True)

        assert result == {"message": "Note 'Secret' permanently deleted"}
        assert store.select(NOTES, {"id": eq(created["uuid"])}) == []
        assert store.select(NOTE_TAGS, {"note_id": eq(created["uuid"])}) == []


class TestNoteTags:
    def test_tag_and_untag(self, note_service, tag_service):
        created = note_service.create_note("Ideas")

        assert note_service.tag_note(created["uuid"], "later") == {"message": "Added tag 'later' to note"}
        assert note_service.tag_note(created["uuid"], "later") == {"message": "Tag 'later' already assigned to note"}
        assert tag_service.tag_names_for_note(created["uuid"]) == ["later"]

        assert note_service.untag_note(created["uuid"], "later") == {"message": "Removed tag 'later' from note"}
        assert tag_service.tag_names_for_note(created["uuid"]) == []

    def test_note_and_task_links_are_separate(self, note_service, task_service, tag_service):
        note = note_service.create_note("Shared tag", tags=["home"])
        task = task_service.create_task("Shared tag", tags=["home"])

        tag_ids = tag_service.tag_ids_by_names(["home"])
        assert tag_service.note_ids_with_tags(tag_ids) == {note["uuid"]}
        assert tag_service.task_ids_with_tags(tag_ids) == {task["uuid"]}

    def test_untag_unknown_tag(self, note_service):
        created = note_service.create_note("Ideas")

        with pytest.raises(NotFoundError):
            note_service.untag_note(created["uuid"], "nope")

    def test_blank_tag(self, note_service):
        with pytest.raises(ValidationError):
            note_service.tag_note("any", "  ")


class TestStoreFailures:
    def test_store_error_propagates(self):
        store = MagicMock()
        store.select.side_effect = StoreError("Store error: 500", operation="GET notes", status_code=500)
        service = NoteService(store, "user-1")

        with pytest.raises(StoreError):
            service.search_notes()
