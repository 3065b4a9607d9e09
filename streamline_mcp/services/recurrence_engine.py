"""
Recurrence engine - computes occurrence dates for recurring task series.

Everything here is a pure function of its arguments: the current time is
always passed in as ``reference_date`` so the results are deterministic.
Month and year arithmetic goes through ``dateutil.relativedelta``, which
clamps the day of month (Jan 31 + 1 month = Feb 28).
"""
import calendar
import logging
from datetime import datetime, timedelta
from typing import Optional, Iterator

from dateutil.relativedelta import relativedelta

from streamline_mcp.models.recurrence_models import (
    RecurrenceRule,
    Frequency,
    MonthlyMode,
    AnchorMode,
    EndsAfterOccurrences,
    EndsOnDate,
    LAST_ORDINAL_WEEK,
)
from streamline_mcp.utils.dates import weekday_number, ensure_aware

logger = logging.getLogger(__name__)

MAX_CATCH_UP_ITERATIONS = 1000

WEEKDAY_ABBREVIATIONS = {
    1: "Sun",
    2: "Mon",
    3: "Tue",
    4: "Wed",
    5: "Thu",
    6: "Fri",
    7: "Sat",
}

MONTH_ABBREVIATIONS = {i: calendar.month_abbr[i] for i in range(1, 13)}


def has_ended(rule: RecurrenceRule, reference_date: datetime) -> bool:
    """
    Whether the series described by ``rule`` is over as of ``reference_date``.

    ``afterOccurrences`` compares the rule's occurrence counter against the
    configured count; ``onDate`` ends once the reference day is strictly past
    the end day.
    """
    end = rule.end_condition
    if isinstance(end, EndsAfterOccurrences):
        return rule.occurrences_generated >= end.count
    if isinstance(end, EndsOnDate):
        return reference_date.date() > end.date.date()
    return False


def next_occurrence_date(
    rule: RecurrenceRule,
    anchor_date: datetime,
    reference_date: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Compute the next occurrence of a series.

    Args:
        rule: Recurrence rule of the series
        anchor_date: Date the computation starts from (previous due date or
            completion time, depending on the caller)
        reference_date: "Now"; defaults to ``anchor_date``

    Returns:
        The next occurrence date, or None when the series has ended
    """
    if reference_date is None:
        reference_date = anchor_date
    anchor_date = ensure_aware(anchor_date, reference_date.tzinfo)
    reference_date = ensure_aware(reference_date, anchor_date.tzinfo)

    if has_ended(rule, reference_date):
        return None

    candidate = _advance(rule, anchor_date)

    if rule.anchor == AnchorMode.SCHEDULED_DUE_DATE and candidate < reference_date:
        # Series fell behind (e.g. while paused): roll forward to the first
        # slot on or after the reference date.
        for _ in range(MAX_CATCH_UP_ITERATIONS):
            candidate = _advance(rule, candidate)
            if candidate >= reference_date:
                break
        else:
            logger.warning(
                f"Could not catch {rule.frequency.value} series up to {reference_date.isoformat()} "
                f"within {MAX_CATCH_UP_ITERATIONS} iterations; using the reference date"
            )
            candidate = reference_date

    end = rule.end_condition
    if isinstance(end, EndsOnDate) and candidate.date() > end.date.date():
        return None

    return candidate


def upcoming_dates(
    rule: RecurrenceRule,
    anchor_date: datetime,
    count: int,
    reference_date: Optional[datetime] = None
) -> Iterator[datetime]:
    """
    Yield up to ``count`` future occurrence dates, honouring the end condition.

    The occurrence counter is advanced on a copy of the rule, the same way the
    series lifecycle advances it when occurrences are materialized.
    """
    current_rule = rule
    current = anchor_date
    for _ in range(count):
        nxt = next_occurrence_date(current_rule, current, reference_date)
        if nxt is None:
            return
        yield nxt
        current_rule = current_rule.with_generated(current_rule.occurrences_generated + 1)
        current = nxt
        reference_date = None


def _advance(rule: RecurrenceRule, anchor: datetime) -> datetime:
    """Raw next candidate after ``anchor``, before catch-up and end checks."""
    if rule.frequency == Frequency.DAILY:
        return anchor + timedelta(days=rule.interval)
    if rule.frequency == Frequency.WEEKLY:
        return _advance_weekly(rule, anchor)
    if rule.frequency == Frequency.MONTHLY:
        if rule.monthly_mode == MonthlyMode.ORDINAL_WEEKDAY:
            return _advance_monthly_ordinal(rule, anchor)
        return anchor + relativedelta(months=rule.interval, day=rule.effective_day_of_month)
    return _advance_yearly(rule, anchor)


def _advance_weekly(rule: RecurrenceRule, anchor: datetime) -> datetime:
    if not rule.weekdays:
        return anchor + timedelta(weeks=rule.interval)

    current = weekday_number(anchor)

    if rule.interval == 1:
        for day in rule.weekdays:
            if day > current:
                return anchor + timedelta(days=day - current)

    # Jump whole weeks, then snap to the first listed weekday of that week.
    jumped = anchor + timedelta(weeks=rule.interval)
    return jumped + timedelta(days=rule.weekdays[0] - current)


def _advance_monthly_ordinal(rule: RecurrenceRule, anchor: datetime) -> datetime:
    first = anchor + relativedelta(months=rule.interval, day=1)
    return _ordinal_weekday_in_month(first, rule.effective_ordinal_week, rule.effective_ordinal_weekday)


def _ordinal_weekday_in_month(first_of_month: datetime, ordinal: int, weekday: int) -> datetime:
    """
    N-th ``weekday`` of the month starting at ``first_of_month``.

    ``ordinal == -1`` selects the last one. An ordinal the month does not
    have (a 5th Tuesday in a four-Tuesday month) falls back to the last one.
    """
    days_in_month = calendar.monthrange(first_of_month.year, first_of_month.month)[1]
    last_of_month = first_of_month.replace(day=days_in_month)

    if ordinal == LAST_ORDINAL_WEEK:
        return last_of_month - timedelta(days=(weekday_number(last_of_month) - weekday) % 7)

    first_match = first_of_month + timedelta(days=(weekday - weekday_number(first_of_month)) % 7)
    candidate = first_match + timedelta(weeks=ordinal - 1)
    if candidate.month != first_of_month.month:
        return _ordinal_weekday_in_month(first_of_month, LAST_ORDINAL_WEEK, weekday)
    return candidate


def _advance_yearly(rule: RecurrenceRule, anchor: datetime) -> datetime:
    delta = relativedelta(years=rule.interval)
    if rule.month_of_year:
        delta += relativedelta(month=rule.month_of_year)
    if rule.day_of_month:
        delta += relativedelta(day=rule.day_of_month)
    return anchor + delta


def ordinal_suffix(n: int) -> str:
    """English ordinal suffix: 1st, 2nd, 3rd, 4th, 11th, 12th, 13th, 21st..."""
    if 11 <= n % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def _every(interval: int, unit: str) -> str:
    if interval == 1:
        return f"Every {unit}"
    return f"Every {interval} {unit}s"


def human_readable_summary(rule: RecurrenceRule) -> str:
    """
    Short description of a rule for display, e.g. "Every Mon, Wed, Fri".

    Appends "after completion" for rules anchored on the completion date.
    """
    if rule.frequency == Frequency.DAILY:
        summary = _every(rule.interval, "day")

    elif rule.frequency == Frequency.WEEKLY:
        days = ", ".join(WEEKDAY_ABBREVIATIONS[d] for d in rule.weekdays)
        if not days:
            summary = _every(rule.interval, "week")
        elif rule.interval == 1:
            summary = f"Every {days}"
        else:
            summary = f"Every {rule.interval} weeks on {days}"

    elif rule.frequency == Frequency.MONTHLY:
        base = _every(rule.interval, "month")
        if rule.monthly_mode == MonthlyMode.ORDINAL_WEEKDAY:
            week = rule.effective_ordinal_week
            ordinal = "last" if week == LAST_ORDINAL_WEEK else f"{week}{ordinal_suffix(week)}"
            summary = f"{base} on the {ordinal} {WEEKDAY_ABBREVIATIONS[rule.effective_ordinal_weekday]}"
        else:
            day = rule.effective_day_of_month
            summary = f"{base} on the {day}{ordinal_suffix(day)}"

    else:
        summary = _every(rule.interval, "year")
        if rule.month_of_year and rule.day_of_month:
            summary += f" on {MONTH_ABBREVIATIONS[rule.month_of_year]} {rule.day_of_month}"
        elif rule.month_of_year:
            summary += f" in {MONTH_ABBREVIATIONS[rule.month_of_year]}"

    if rule.anchor == AnchorMode.COMPLETION_DATE:
        summary += " after completion"
    return summary
