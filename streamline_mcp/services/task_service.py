"""
Task service - business logic for task operations.
This layer contains no HTTP framework dependencies.

Occurrences of recurring series are ordinary task rows; completing, deleting
and skipping them hands over to the SeriesService for next-occurrence
generation. Series templates are hidden from search and cannot be completed
or deleted here.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Callable

from pydantic import ValidationError as PydanticValidationError

from streamline_mcp.exceptions import (
    TaskNotFoundError,
    ValidationError,
    SeriesStateError,
)
from streamline_mcp.models.recurrence_models import RecurrenceRule
from streamline_mcp.models.task_models import (
    TaskCreate,
    NOTES_PREVIEW_LENGTH,
    new_task_record,
    is_open,
    drop_empty,
)
from streamline_mcp.services.series_service import SeriesService
from streamline_mcp.services.tag_service import TagService
from streamline_mcp.storage.interface import StoreInterface, TASKS, eq, lt, gte
from streamline_mcp.utils.dates import now_local, parse_date, parse_timestamp, to_iso, format_date

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20
FETCH_LIMIT = 100
TAG_FILTER_FETCH_LIMIT = 1000


def _due_on_or_after(task: Dict[str, Any], bound: datetime) -> bool:
    due = parse_timestamp(task.get("due_date"))
    return due is not None and due >= bound


class TaskService:
    """Service for task business logic."""

    def __init__(
        self,
        store: StoreInterface,
        user_id: str,
        series: Optional[SeriesService] = None,
        tags: Optional[TagService] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.user_id = user_id
        self.tags = tags or TagService(store, user_id)
        self._clock = clock or now_local
        self.series = series or SeriesService(store, user_id, tags=self.tags, clock=self._clock)

    def _user_filter(self, task_id: str) -> Dict[str, str]:
        return {"id": eq(task_id), "user_id": eq(self.user_id)}

    def _parse_due_date(self, value: Optional[str], field: str = "due_date") -> Optional[datetime]:
        if value is None or value == "":
            return None
        parsed = parse_date(value, now=self._clock())
        if parsed is None:
            raise ValidationError(
                f"Invalid {field}: '{value}'. Use today, tomorrow, yesterday or an ISO date",
                field=field,
                value=value
            )
        return parsed

    def get_task(self, task_id: str) -> Dict[str, Any]:
        """
        Get a task row.

        Raises:
            ValidationError: If ``task_id`` is empty
            TaskNotFoundError: If no such task exists for the user
        """
        if not task_id:
            raise ValidationError("UUID required", field="uuid")
        rows = self.store.select(TASKS, self._user_filter(task_id), limit=1)
        if not rows:
            raise TaskNotFoundError(task_id)
        return rows[0]

    def search_tasks(
        self,
        query: Optional[str] = None,
        tags: Optional[List[str]] = None,
        include_completed: bool = False,
        due_before: Optional[str] = None,
        due_after: Optional[str] = None,
        limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Search the user's tasks ordered by due date (undated last).

        Args:
            query: Case-insensitive text matched against name and notes
            tags: Only tasks carrying all of these tags
            include_completed: Also return completed and skipped tasks
            due_before: Due on or before this date
            due_after: Due on or after this date
            limit: Maximum number of results (default 20)

        Returns:
            Dictionary with ``count`` and ``tasks``
        """
        filters = {"user_id": eq(self.user_id), "is_deleted": eq(False)}
        if not include_completed:
            filters["status"] = eq(False)

        before = self._parse_due_date(due_before, "due_before")
        if before is not None:
            filters["due_date"] = lt(to_iso(before + timedelta(days=1)))
        after = self._parse_due_date(due_after, "due_after")
        if after is not None and before is None:
            filters["due_date"] = gte(to_iso(after))

        tag_names = [t for t in (tags or []) if t]
        fetch_limit = TAG_FILTER_FETCH_LIMIT if tag_names else FETCH_LIMIT
        tasks = self.store.select(TASKS, filters, order="due_date.asc.nullslast", limit=fetch_limit)
        tasks = [
            t for t in tasks
            if not t.get("is_recurring_template") and (include_completed or not t.get("is_skipped"))
        ]
        if after is not None and before is not None:
            # One filter per column, so the lower bound of a range is applied here
            tasks = [t for t in tasks if _due_on_or_after(t, after)]

        if query:
            lower = query.lower()
            tasks = [
                t for t in tasks
                if lower in (t.get("name") or "").lower() or lower in (t.get("note") or "").lower()
            ]

        if tag_names:
            tag_ids = self.tags.tag_ids_by_names(tag_names)
            if len(tag_ids) < len(tag_names):
                tasks = []
            else:
                task_ids = self.tags.task_ids_with_tags(tag_ids)
                tasks = [t for t in tasks if t["id"] in task_ids]

        tasks = tasks[:limit or DEFAULT_SEARCH_LIMIT]
        results = [
            drop_empty({
                "uuid": t["id"],
                "name": t.get("name"),
                "completed": bool(t.get("status")),
                "due_date": format_date(t.get("due_date")),
                "notes": (t.get("note") or "")[:NOTES_PREVIEW_LENGTH],
                "is_urgent": t.get("is_urgent_alarm") or None,
                "recurrence": t.get("recurrence_summary"),
            })
            for t in tasks
        ]
        response: Dict[str, Any] = {"count": len(results), "tasks": results}
        if not results:
            response["message"] = "No tasks found matching your criteria."
        return response

    def read_task(self, task_id: str) -> Dict[str, Any]:
        """Full details of one task including tag names and recurrence info."""
        t = self.get_task(task_id)
        details = drop_empty({
            "uuid": t["id"],
            "name": t.get("name"),
            "notes": t.get("note"),
            "due_date": format_date(t.get("due_date")),
            "created": format_date(t.get("created_at")),
            "completed_date": format_date(t.get("completed_date")),
            "recurrence": t.get("recurrence_summary"),
            "series_id": t.get("series_id"),
            "tags": self.tags.tag_names_for_task(t["id"]),
        })
        details["completed"] = bool(t.get("status"))
        details["is_urgent"] = bool(t.get("is_urgent_alarm"))
        if t.get("series_id"):
            details["is_skipped"] = bool(t.get("is_skipped"))
            details["is_recurring_template"] = bool(t.get("is_recurring_template"))
        return details

    def create_task(
        self,
        name: Optional[str],
        notes: Optional[str] = None,
        due_date: Optional[str] = None,
        tags: Optional[List[str]] = None,
        is_urgent: bool = False,
        recurrence: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create a task, or a recurring series when ``recurrence`` is given.

        Args:
            name: Task name (required)
            notes: Optional notes
            due_date: today, tomorrow, yesterday or ISO date; required with ``recurrence``
            tags: Tag names, created when missing
            is_urgent: Urgent alarm flag
            recurrence: Recurrence rule in its stored camelCase form

        Returns:
            Dictionary with the new task's uuid (the first occurrence for a series)

        Raises:
            ValidationError: If input is invalid; nothing is written
        """
        try:
            request = TaskCreate(
                name=name or "",
                notes=notes,
                due_date=due_date,
                tags=tags or [],
                is_urgent=bool(is_urgent),
                recurrence=recurrence
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or None
            raise ValidationError(
                "Task name is required" if field == "name" else first.get("msg", str(e)),
                field=field
            ) from e

        due = self._parse_due_date(request.due_date)
        rule = None
        if request.recurrence is not None:
            rule = RecurrenceRule.from_blob(request.recurrence)
            if due is None:
                raise ValidationError("A due date is required for recurring tasks", field="due_date")

        tag_ids = self.tags.get_or_create_tag_ids(request.tags) if request.tags else []

        if rule is not None:
            created = self.series.create_series(
                request.name, request.notes, due, rule,
                is_urgent=request.is_urgent,
                tag_ids=tag_ids
            )
            occurrence = created["occurrence"]
            return {
                "uuid": occurrence["id"],
                "series_id": occurrence["series_id"],
                "recurrence": occurrence.get("recurrence_summary"),
                "message": f"Created recurring task: {request.name}",
            }

        task = self.store.insert(TASKS, new_task_record(
            self.user_id, request.name, request.notes, due, request.is_urgent, self._clock()
        ))
        if tag_ids:
            self.tags.link_tags(task["id"], tag_ids)
        logger.info(f"Created task {task['id']}")
        return {"uuid": task["id"], "message": f"Created task: {request.name}"}

    def update_task(
        self,
        task_id: str,
        name: Optional[str] = None,
        notes: Optional[str] = None,
        due_date: Optional[str] = None,
        is_urgent: Optional[bool] = None
    ) -> Dict[str, Any]:
        """Update the given fields of a task; omitted fields are left unchanged."""
        task = self.get_task(task_id)

        updates: Dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Task name cannot be empty", field="name")
            updates["name"] = name.strip()
        if notes is not None:
            updates["note"] = notes
        if is_urgent is not None:
            updates["is_urgent_alarm"] = bool(is_urgent)
        due = self._parse_due_date(due_date)
        if due is not None:
            updates["due_date"] = to_iso(due)

        updates["updated_at"] = to_iso(self._clock())
        self.store.update(TASKS, self._user_filter(task_id), updates)
        return {"uuid": task["id"], "message": "Task updated successfully"}

    def complete_task(self, task_id: str, completed: bool = True) -> Dict[str, Any]:
        """
        Mark a task completed or not completed.

        Completing the open occurrence of an active series generates the next
        occurrence; the lifecycle result is returned under ``recurrence``.
        Marking a task not completed never touches its series.
        """
        task = self.get_task(task_id)
        if task.get("is_recurring_template"):
            raise SeriesStateError(
                f"'{task_id}' is a recurring series template; complete its open occurrence instead",
                field="uuid",
                value=task_id
            )

        was_open = is_open(task)
        now = self._clock()
        self.store.update(TASKS, self._user_filter(task_id), {
            "status": completed,
            "completed_date": to_iso(now) if completed else None,
            "updated_at": to_iso(now),
        })

        action = "completed" if completed else "uncompleted"
        result: Dict[str, Any] = {"message": f"Task '{task.get('name')}' marked as {action}"}
        if completed and was_open and task.get("series_id"):
            result["recurrence"] = self.series.on_occurrence_completed(task, now)
        return result

    def delete_task(self, task_id: str, permanent: bool = False) -> Dict[str, Any]:
        """
        Move a task to the trash, or remove it and its tag links for good.

        Trashing the open occurrence of an active series generates a
        replacement. Permanent deletion has no series side effects.

        Raises:
            SeriesStateError: For series templates; end the series instead
        """
        task = self.get_task(task_id)
        if task.get("is_recurring_template"):
            raise SeriesStateError(
                f"'{task_id}' is a recurring series template; end the series instead of deleting it",
                field="uuid",
                value=task_id
            )

        result: Dict[str, Any] = {}
        if permanent:
            self.tags.unlink_all(task_id)
            self.store.delete(TASKS, self._user_filter(task_id))
            action = "permanently deleted"
        else:
            now = to_iso(self._clock())
            self.store.update(TASKS, self._user_filter(task_id), {
                "trashed_date": now,
                "is_deleted": True,
                "updated_at": now,
            })
            action = "moved to trash"
            if task.get("series_id") and is_open(task):
                result["recurrence"] = self.series.on_occurrence_deleted(task)

        result["message"] = f"Task '{task.get('name')}' {action}"
        return result

    def tag_task(self, task_id: str, tag_name: str) -> Dict[str, Any]:
        """Add a tag (created when missing) to a task."""
        if not tag_name or not tag_name.strip():
            raise ValidationError("Tag name and UUID required", field="tag")
        task = self.get_task(task_id)
        tag_ids = self.tags.get_or_create_tag_ids([tag_name.strip()])
        if not self.tags.link_tags(task["id"], tag_ids):
            return {"message": f"Tag '{tag_name}' already assigned to task"}
        return {"message": f"Added tag '{tag_name}' to task"}

    def untag_task(self, task_id: str, tag_name: str) -> Dict[str, Any]:
        if not tag_name or not tag_name.strip():
            raise ValidationError("Tag name and UUID required", field="tag")
        task = self.get_task(task_id)
        self.tags.unlink_tag(task["id"], tag_name.strip())
        return {"message": f"Removed tag '{tag_name}' from task"}
