"""
Pydantic models for recurrence rules.

The rule is stored on the series template as a JSON blob using the
camelCase keys the Streamline apps write, so every field carries an alias
and models are dumped ``by_alias``.
"""
import json
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Union, Literal, Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from streamline_mcp.exceptions import InvalidRecurrenceRuleError

DEFAULT_DAY_OF_MONTH = 1
DEFAULT_ORDINAL_WEEK = 1
DEFAULT_ORDINAL_WEEKDAY = 2  # Monday
DEFAULT_MONTH_OF_YEAR = 1
LAST_ORDINAL_WEEK = -1


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class MonthlyMode(str, Enum):
    DAY_OF_MONTH = "dayOfMonth"
    ORDINAL_WEEKDAY = "ordinalWeekday"


class AnchorMode(str, Enum):
    SCHEDULED_DUE_DATE = "scheduledDueDate"
    COMPLETION_DATE = "completionDate"


class RecurrenceStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class NeverEnds(BaseModel):
    type: Literal["never"] = "never"


class EndsAfterOccurrences(BaseModel):
    type: Literal["afterOccurrences"] = "afterOccurrences"
    count: int = Field(..., ge=1)


class EndsOnDate(BaseModel):
    type: Literal["onDate"] = "onDate"
    date: datetime


EndCondition = Annotated[
    Union[NeverEnds, EndsAfterOccurrences, EndsOnDate],
    Field(discriminator="type")
]


def _in_range(value: Any, low: int, high: int, default: int) -> Optional[int]:
    """Left-out fields stay None; given but invalid ones become ``default``."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < low or value > high:
        return default
    return value


class RecurrenceRule(BaseModel):
    """Repeat pattern of a recurring task series."""

    model_config = ConfigDict(populate_by_name=True)

    frequency: Frequency
    interval: int = Field(1, ge=1)
    weekdays: List[int] = Field(default_factory=list)
    monthly_mode: MonthlyMode = Field(MonthlyMode.DAY_OF_MONTH, alias="monthlyMode")
    day_of_month: Optional[int] = Field(None, alias="dayOfMonth")
    ordinal_week: Optional[int] = Field(None, alias="ordinalWeek")
    ordinal_weekday: Optional[int] = Field(None, alias="ordinalWeekday")
    month_of_year: Optional[int] = Field(None, alias="monthOfYear")
    anchor: AnchorMode = AnchorMode.SCHEDULED_DUE_DATE
    end_condition: EndCondition = Field(default_factory=NeverEnds, alias="endCondition")
    occurrences_generated: int = Field(0, ge=0, alias="occurrencesGenerated")

    @field_validator("weekdays", mode="before")
    @classmethod
    def normalize_weekdays(cls, v: Any) -> List[int]:
        """Keep valid weekday numbers (1=Sunday..7=Saturday), sorted and unique."""
        if not v:
            return []
        return sorted({d for d in v if isinstance(d, int) and 1 <= d <= 7})

    @field_validator("day_of_month", mode="before")
    @classmethod
    def default_invalid_day(cls, v: Any) -> Optional[int]:
        return _in_range(v, 1, 31, DEFAULT_DAY_OF_MONTH)

    @field_validator("ordinal_weekday", mode="before")
    @classmethod
    def default_invalid_weekday(cls, v: Any) -> Optional[int]:
        return _in_range(v, 1, 7, DEFAULT_ORDINAL_WEEKDAY)

    @field_validator("month_of_year", mode="before")
    @classmethod
    def default_invalid_month(cls, v: Any) -> Optional[int]:
        return _in_range(v, 1, 12, DEFAULT_MONTH_OF_YEAR)

    @field_validator("ordinal_week", mode="before")
    @classmethod
    def default_invalid_ordinal(cls, v: Any) -> Optional[int]:
        if v == LAST_ORDINAL_WEEK and not isinstance(v, bool):
            return v
        return _in_range(v, 1, 5, DEFAULT_ORDINAL_WEEK)

    @property
    def effective_day_of_month(self) -> int:
        return self.day_of_month or DEFAULT_DAY_OF_MONTH

    @property
    def effective_ordinal_week(self) -> int:
        return self.ordinal_week or DEFAULT_ORDINAL_WEEK

    @property
    def effective_ordinal_weekday(self) -> int:
        return self.ordinal_weekday or DEFAULT_ORDINAL_WEEKDAY

    def to_blob(self) -> Dict[str, Any]:
        """JSON-compatible dict for persisting on the template record."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    @classmethod
    def from_blob(cls, blob: Union[str, bytes, Dict[str, Any], None]) -> "RecurrenceRule":
        """
        Parse a rule stored on a template record.

        Raises:
            InvalidRecurrenceRuleError: If the blob is missing or malformed
        """
        if blob is None or blob == "":
            raise InvalidRecurrenceRuleError("Recurrence rule is missing", field="recurrence_rule")
        try:
            data = json.loads(blob) if isinstance(blob, (str, bytes)) else blob
            return cls.model_validate(data)
        except (ValueError, TypeError, PydanticValidationError) as e:
            raise InvalidRecurrenceRuleError(
                f"Invalid recurrence rule: {e}",
                field="recurrence_rule"
            ) from e

    def with_generated(self, count: int) -> "RecurrenceRule":
        """Copy of the rule with a new occurrence counter."""
        return self.model_copy(update={"occurrences_generated": count})
