"""
Series lifecycle service - template/occurrence management for recurring tasks.
This layer contains no HTTP framework dependencies.

A series is one hidden template row (``is_recurring_template=true``) holding
the recurrence rule and ``recurrence_status``, plus the occurrence rows
generated from it. A series has at most one open occurrence at a time.

The store has no transactions, so every operation that may create an
occurrence runs under a per-series lock and re-checks for an open occurrence
right before inserting. Another process writing the same series can still
race with us.
"""
import logging
import threading
import uuid as uuid_lib
import weakref
from datetime import datetime
from typing import Optional, Dict, Any, Callable, List

from streamline_mcp.exceptions import (
    InvalidRecurrenceRuleError,
    NotInSeriesError,
    NotRecurringOccurrenceError,
    SeriesStateError,
    TaskNotFoundError,
    ValidationError,
)
from streamline_mcp.models.recurrence_models import (
    RecurrenceRule,
    RecurrenceStatus,
    Frequency,
    MonthlyMode,
    AnchorMode,
)
from streamline_mcp.models.task_models import new_task_record, is_open
from streamline_mcp.monitoring import (
    recurrence_occurrences_generated_total,
    recurrence_series_transitions_total,
    recurrence_rule_errors_total,
)
from streamline_mcp.services.recurrence_engine import (
    next_occurrence_date,
    upcoming_dates,
    human_readable_summary,
)
from streamline_mcp.services.tag_service import TagService
from streamline_mcp.storage.interface import StoreInterface, TASKS, eq
from streamline_mcp.tracing import trace_span, add_span_attribute
from streamline_mcp.utils.dates import at_noon, now_local, parse_timestamp, to_iso, format_date, weekday_number

logger = logging.getLogger(__name__)

TRIGGER_CREATE = "create"
TRIGGER_COMPLETE = "complete"
TRIGGER_SKIP = "skip"
TRIGGER_DELETE = "delete"
TRIGGER_RESUME = "resume"

DEFAULT_PREVIEW_COUNT = 5


def seed_rule_from_due_date(rule: RecurrenceRule, due_date: datetime) -> RecurrenceRule:
    """
    Fill in the day/month/ordinal fields a rule leaves open from the first due date.

    A monthly rule created on the 15th keeps recurring on the 15th rather than
    falling back to the 1st.
    """
    updates: Dict[str, Any] = {}
    if rule.frequency == Frequency.MONTHLY:
        if rule.monthly_mode == MonthlyMode.ORDINAL_WEEKDAY:
            if rule.ordinal_weekday is None:
                updates["ordinal_weekday"] = weekday_number(due_date)
            if rule.ordinal_week is None:
                updates["ordinal_week"] = (due_date.day - 1) // 7 + 1
        elif rule.day_of_month is None:
            updates["day_of_month"] = due_date.day
    elif rule.frequency == Frequency.YEARLY:
        if rule.month_of_year is None:
            updates["month_of_year"] = due_date.month
        if rule.day_of_month is None:
            updates["day_of_month"] = due_date.day
    return rule.model_copy(update=updates) if updates else rule


class SeriesService:
    """Service for recurring series business logic."""

    # Entries disappear once no caller holds the lock
    _locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
    _locks_guard = threading.Lock()

    def __init__(
        self,
        store: StoreInterface,
        user_id: str,
        tags: Optional[TagService] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            store: Record store
            user_id: Owner of every row read or written
            tags: Tag service used to copy tag links onto new occurrences
            clock: Returns "now"; defaults to the local wall clock
        """
        self.store = store
        self.user_id = user_id
        self.tags = tags or TagService(store, user_id)
        self._clock = clock or now_local

    @classmethod
    def series_lock(cls, series_id: str) -> threading.Lock:
        with cls._locks_guard:
            lock = cls._locks.get(series_id)
            if lock is None:
                lock = cls._locks[series_id] = threading.Lock()
            return lock

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        rows = self.store.select(TASKS, {"id": eq(task_id), "user_id": eq(self.user_id)}, limit=1)
        return rows[0] if rows else None

    def get_template(self, series_id: str) -> Optional[Dict[str, Any]]:
        rows = self.store.select(
            TASKS,
            {
                "series_id": eq(series_id),
                "user_id": eq(self.user_id),
                "is_recurring_template": eq(True),
            },
            limit=1
        )
        return rows[0] if rows else None

    def list_occurrences(self, series_id: str) -> List[Dict[str, Any]]:
        rows = self.store.select(
            TASKS,
            {"series_id": eq(series_id), "user_id": eq(self.user_id)},
            order="due_date.asc.nullslast"
        )
        return [r for r in rows if not r.get("is_recurring_template")]

    def find_open_occurrence(self, series_id: str) -> Optional[Dict[str, Any]]:
        """The series' open occurrence, if any."""
        for row in self.list_occurrences(series_id):
            if is_open(row):
                return row
        return None

    def _template_for(self, task: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        template = None
        if task.get("series_id"):
            template = self.get_template(task["series_id"])
        if template is None and task.get("recurrence_parent_id"):
            template = self.get_task(task["recurrence_parent_id"])
        return template

    def resolve_template(self, uuid: str) -> Dict[str, Any]:
        """
        Find the template of the series ``uuid`` belongs to.

        Args:
            uuid: Template or occurrence id

        Raises:
            NotInSeriesError: If ``uuid`` is neither a template nor an occurrence
        """
        task = self.get_task(uuid)
        if task is None:
            raise NotInSeriesError(uuid)
        if task.get("is_recurring_template"):
            return task
        template = self._template_for(task)
        if template is None:
            raise NotInSeriesError(uuid)
        return template

    def _require_occurrence(self, uuid: str) -> Dict[str, Any]:
        task = self.get_task(uuid)
        if task is None:
            raise TaskNotFoundError(uuid)
        if task.get("is_recurring_template") or not task.get("series_id"):
            raise NotRecurringOccurrenceError(uuid)
        return task

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_series(
        self,
        name: str,
        notes: Optional[str],
        due_date: datetime,
        rule: RecurrenceRule,
        is_urgent: bool = False,
        tag_ids: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Create a series: the template plus its first occurrence, both due on ``due_date``.

        The rule's counter starts at 1 to account for the first occurrence.

        Returns:
            Dictionary with ``template`` and ``occurrence`` rows
        """
        if due_date is None:
            raise ValidationError("A due date is required for recurring tasks", field="due_date")

        rule = seed_rule_from_due_date(rule, due_date).with_generated(1)
        summary = human_readable_summary(rule)
        series_id = str(uuid_lib.uuid4())
        now = self.now()

        with trace_span("series.create", attributes={"series.id": series_id, "series.frequency": rule.frequency.value}):
            template = self.store.insert(TASKS, new_task_record(
                self.user_id, name, notes, due_date, is_urgent, now,
                is_recurring_template=True,
                series_id=series_id,
                recurrence_rule=rule.to_blob(),
                recurrence_status=RecurrenceStatus.ACTIVE.value,
                recurrence_summary=summary,
            ))
            occurrence = self.store.insert(TASKS, new_task_record(
                self.user_id, name, notes, due_date, is_urgent, now,
                series_id=series_id,
                recurrence_parent_id=template["id"],
                recurrence_summary=summary,
            ))
            if tag_ids:
                self.tags.link_tags(template["id"], tag_ids)
                self.tags.link_tags(occurrence["id"], tag_ids)

        recurrence_occurrences_generated_total.labels(trigger=TRIGGER_CREATE).inc()
        logger.info(f"Created series {series_id} ({summary}) with first occurrence {occurrence['id']}")
        return {"template": template, "occurrence": occurrence}

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def on_occurrence_completed(self, occurrence: Dict[str, Any], completed_at: datetime) -> Dict[str, Any]:
        """
        Generate the next occurrence after ``occurrence`` was completed.

        Paused and ended series are left alone. The anchor is the occurrence's
        due date, or ``completed_at`` for rules anchored on completion.

        Returns:
            Lifecycle result (see ``_generate_next``)
        """
        series_id = occurrence["series_id"]
        with self.series_lock(series_id):
            template = self._template_for(occurrence)
            skipped = self._inactive_result(template, series_id)
            if skipped:
                return skipped
            rule = self._parse_rule(template)
            if rule is None:
                return self._rule_error_result(template)

            due_date = parse_timestamp(occurrence.get("due_date"))
            if rule.anchor == AnchorMode.COMPLETION_DATE or due_date is None:
                anchor = at_noon(completed_at)
            else:
                anchor = due_date
            return self._generate_next(template, anchor, completed_at, TRIGGER_COMPLETE)

    def skip_occurrence(self, uuid: str) -> Dict[str, Any]:
        """
        Skip an open occurrence and generate the next one.

        Skipping always anchors on the scheduled due date.

        Raises:
            TaskNotFoundError: If the task does not exist
            NotRecurringOccurrenceError: If the task is not an occurrence of a series
            SeriesStateError: If the occurrence is not open
        """
        occurrence = self._require_occurrence(uuid)
        series_id = occurrence["series_id"]
        with self.series_lock(series_id), trace_span("series.skip", attributes={"series.id": series_id, "task.id": uuid}):
            occurrence = self.get_task(uuid) or occurrence
            if not is_open(occurrence):
                raise SeriesStateError(
                    f"Task '{occurrence.get('name')}' is already completed, skipped or deleted",
                    field="uuid",
                    value=uuid
                )

            now = self.now()
            self.store.update(
                TASKS,
                {"id": eq(uuid), "user_id": eq(self.user_id)},
                {"is_skipped": True, "updated_at": to_iso(now)}
            )

            template = self._template_for(occurrence)
            result = self._inactive_result(template, series_id)
            if not result:
                rule = self._parse_rule(template)
                if rule is None:
                    result = self._rule_error_result(template)
                else:
                    anchor = parse_timestamp(occurrence.get("due_date")) or at_noon(now)
                    result = self._generate_next(template, anchor, now, TRIGGER_SKIP)

        result.update({"skipped": uuid, "name": occurrence.get("name")})
        return result

    def on_occurrence_deleted(self, occurrence: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace an open occurrence that was moved to the trash.

        The replacement is anchored at the deleted occurrence's due date.
        """
        series_id = occurrence["series_id"]
        with self.series_lock(series_id):
            template = self._template_for(occurrence)
            skipped = self._inactive_result(template, series_id)
            if skipped:
                return skipped
            rule = self._parse_rule(template)
            if rule is None:
                return self._rule_error_result(template)
            now = self.now()
            anchor = parse_timestamp(occurrence.get("due_date")) or at_noon(now)
            return self._generate_next(template, anchor, now, TRIGGER_DELETE)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def pause_series(self, uuid: str) -> Dict[str, Any]:
        """
        Pause an active series. The open occurrence, if any, stays as it is.

        Raises:
            NotInSeriesError: If ``uuid`` is not part of a series
            SeriesStateError: If the series is not active
        """
        template = self.resolve_template(uuid)
        with self.series_lock(template["series_id"]):
            template = self.get_task(template["id"]) or template
            self._require_status(template, RecurrenceStatus.ACTIVE, "paused")
            self._set_status(template, RecurrenceStatus.PAUSED)
        return self._status_result(template, RecurrenceStatus.PAUSED)

    def resume_series(self, uuid: str) -> Dict[str, Any]:
        """
        Resume a paused series.

        When the series has no open occurrence, the next one is generated
        right away, anchored at noon on the resume day.

        Raises:
            NotInSeriesError: If ``uuid`` is not part of a series
            SeriesStateError: If the series is not paused
        """
        template = self.resolve_template(uuid)
        series_id = template["series_id"]
        with self.series_lock(series_id), trace_span("series.resume", attributes={"series.id": series_id}):
            template = self.get_task(template["id"]) or template
            self._require_status(template, RecurrenceStatus.PAUSED, "resumed")
            self._set_status(template, RecurrenceStatus.ACTIVE)

            result = self._status_result(template, RecurrenceStatus.ACTIVE)
            if self.find_open_occurrence(series_id) is None:
                rule = self._parse_rule(template)
                if rule is None:
                    result.update(self._rule_error_result(template))
                else:
                    now = self.now()
                    result.update(self._generate_next(template, at_noon(now), now, TRIGGER_RESUME))
            else:
                result.update({"generated": False, "reason": "open_occurrence_exists"})
        return result

    def end_series(self, uuid: str) -> Dict[str, Any]:
        """
        End a series for good. Existing occurrences are left untouched.

        Raises:
            NotInSeriesError: If ``uuid`` is not part of a series
            SeriesStateError: If the series has already ended
        """
        template = self.resolve_template(uuid)
        with self.series_lock(template["series_id"]):
            template = self.get_task(template["id"]) or template
            if self._status(template) == RecurrenceStatus.ENDED:
                raise SeriesStateError("Series has already ended", field="recurrence_status", value="ended")
            self._set_status(template, RecurrenceStatus.ENDED)
        return self._status_result(template, RecurrenceStatus.ENDED)

    def read_series(self, uuid: str, preview_count: int = DEFAULT_PREVIEW_COUNT) -> Dict[str, Any]:
        """
        Describe a series: status, rule, summary, open occurrence and upcoming dates.

        Upcoming dates are only listed for active series.
        """
        template = self.resolve_template(uuid)
        series_id = template["series_id"]
        status = self._status(template)
        open_occurrence = self.find_open_occurrence(series_id)

        result: Dict[str, Any] = {
            "series_id": series_id,
            "template_uuid": template["id"],
            "name": template.get("name"),
            "status": status.value,
            "rule": template.get("recurrence_rule"),
            "summary": template.get("recurrence_summary"),
            "open_occurrence": None,
            "upcoming": [],
        }
        if open_occurrence:
            result["open_occurrence"] = {
                "uuid": open_occurrence["id"],
                "due_date": format_date(open_occurrence.get("due_date")),
            }

        rule = self._parse_rule(template)
        if rule is None:
            result["rule_error"] = "Stored recurrence rule could not be parsed"
            return result

        result["summary"] = human_readable_summary(rule)
        result["occurrences_generated"] = rule.occurrences_generated
        if status == RecurrenceStatus.ACTIVE:
            now = self.now()
            anchor = now
            if open_occurrence:
                anchor = parse_timestamp(open_occurrence.get("due_date")) or now
            result["upcoming"] = [
                format_date(d) for d in upcoming_dates(rule, anchor, preview_count, now)
            ]
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _status(template: Dict[str, Any]) -> RecurrenceStatus:
        try:
            return RecurrenceStatus(template.get("recurrence_status") or RecurrenceStatus.ACTIVE.value)
        except ValueError:
            logger.error(
                f"Template {template.get('id')} has unknown recurrence_status "
                f"'{template.get('recurrence_status')}'; treating it as ended"
            )
            return RecurrenceStatus.ENDED

    def _require_status(self, template: Dict[str, Any], expected: RecurrenceStatus, action: str) -> None:
        current = self._status(template)
        if current != expected:
            raise SeriesStateError(
                f"Series is {current.value} and cannot be {action}",
                field="recurrence_status",
                value=current.value
            )

    def _set_status(self, template: Dict[str, Any], status: RecurrenceStatus) -> None:
        self.store.update(
            TASKS,
            {"id": eq(template["id"]), "user_id": eq(self.user_id)},
            {"recurrence_status": status.value, "updated_at": to_iso(self.now())}
        )
        template["recurrence_status"] = status.value
        recurrence_series_transitions_total.labels(status=status.value).inc()
        add_span_attribute("series.status", status.value)
        logger.info(f"Series {template.get('series_id')} is now {status.value}")

    def _status_result(self, template: Dict[str, Any], status: RecurrenceStatus) -> Dict[str, Any]:
        return {
            "series_id": template.get("series_id"),
            "template_uuid": template["id"],
            "name": template.get("name"),
            "status": status.value,
        }

    def _inactive_result(self, template: Optional[Dict[str, Any]], series_id: str) -> Optional[Dict[str, Any]]:
        if template is None:
            logger.error(f"Series {series_id} has occurrences but no template")
            return {"generated": False, "reason": "template_missing"}
        status = self._status(template)
        if status != RecurrenceStatus.ACTIVE:
            return {"generated": False, "reason": f"series_{status.value}", "series_status": status.value}
        return None

    def _parse_rule(self, template: Dict[str, Any]) -> Optional[RecurrenceRule]:
        try:
            return RecurrenceRule.from_blob(template.get("recurrence_rule"))
        except InvalidRecurrenceRuleError as e:
            recurrence_rule_errors_total.inc()
            logger.error(
                f"Data integrity error: template {template.get('id')} of series "
                f"{template.get('series_id')} has an unusable recurrence rule: {e.message}"
            )
            return None

    @staticmethod
    def _rule_error_result(template: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "generated": False,
            "reason": "invalid_rule",
            "rule_error": f"Recurrence rule of series {template.get('series_id')} could not be parsed",
        }

    def _generate_next(
        self,
        template: Dict[str, Any],
        anchor_date: datetime,
        reference_date: datetime,
        trigger: str
    ) -> Dict[str, Any]:
        """
        Create the series' next occurrence. Caller holds the series lock.

        Returns:
            ``{"generated": True, "next_occurrence": {...}}`` or
            ``{"generated": False, "reason": ...}``
        """
        series_id = template["series_id"]
        # Re-read so the occurrence counter is current
        template = self.get_task(template["id"]) or template
        rule = self._parse_rule(template)
        if rule is None:
            return self._rule_error_result(template)

        with trace_span("series.generate_next", attributes={"series.id": series_id, "series.trigger": trigger}):
            next_date = next_occurrence_date(rule, anchor_date, reference_date)
            if next_date is None:
                self._set_status(template, RecurrenceStatus.ENDED)
                return {"generated": False, "reason": "series_ended", "series_status": RecurrenceStatus.ENDED.value}

            existing = self.find_open_occurrence(series_id)
            if existing is not None:
                logger.info(f"Series {series_id} already has open occurrence {existing['id']}; not generating")
                return {"generated": False, "reason": "open_occurrence_exists", "open_occurrence_uuid": existing["id"]}

            rule = rule.with_generated(rule.occurrences_generated + 1)
            summary = human_readable_summary(rule)
            now = self.now()
            self.store.update(
                TASKS,
                {"id": eq(template["id"]), "user_id": eq(self.user_id)},
                {"recurrence_rule": rule.to_blob(), "recurrence_summary": summary, "updated_at": to_iso(now)}
            )
            occurrence = self.store.insert(TASKS, new_task_record(
                self.user_id,
                template.get("name"),
                template.get("note"),
                next_date,
                template.get("is_urgent_alarm"),
                now,
                series_id=series_id,
                recurrence_parent_id=template["id"],
                recurrence_summary=summary,
            ))
            self.tags.copy_tag_links(template["id"], occurrence["id"])
            add_span_attribute("series.next_occurrence", occurrence["id"])

        recurrence_occurrences_generated_total.labels(trigger=trigger).inc()
        logger.info(f"Generated occurrence {occurrence['id']} of series {series_id} due {next_date.date()} ({trigger})")
        return {
            "generated": True,
            "next_occurrence": {
                "uuid": occurrence["id"],
                "due_date": format_date(next_date),
            },
        }
