"""Recurrence rule models.

A rule is a tagged union discriminated by ``type``. Each variant validates
its own fields at construction, so a rule object that exists is a rule the
expander can run.
"""
from datetime import date
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RULE_TYPES = ("daily", "weekly", "monthly", "yearly")

# Largest step between periods; keeps every series inside the calendar range
MAX_INTERVAL = 1000


class NthWeekday(BaseModel):
    """The k-th occurrence of a weekday within a month (e.g. 2nd Tuesday)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    week: int = Field(..., ge=1, le=5)  # 1-5, which occurrence in the month
    weekday: int = Field(..., ge=1, le=7)  # 1=Monday .. 7=Sunday


class _RuleBase(BaseModel):
    """Fields shared by every rule variant."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    interval: int = Field(default=1, gt=0, le=MAX_INTERVAL)  # repeat every N units of the period
    end_date: Optional[date] = Field(default=None, alias="endDate")  # inclusive
    max_occurrences: Optional[int] = Field(default=None, gt=0, alias="maxOccurrences")
    exclude_dates: Tuple[date, ...] = Field(default=(), alias="excludeDates")

    @field_validator("exclude_dates")
    @classmethod
    def _sort_exclude_dates(cls, value):
        return tuple(sorted(set(value)))

    def to_storage(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys, as stored on the task row."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DailyRule(_RuleBase):
    type: Literal["daily"] = "daily"


class WeeklyRule(_RuleBase):
    type: Literal["weekly"] = "weekly"
    weekdays: Optional[Tuple[int, ...]] = None  # None means the anchor's weekday

    @field_validator("weekdays")
    @classmethod
    def _check_weekdays(cls, value):
        if value is None:
            return value
        if not value:
            raise ValueError("weekdays must not be empty")
        for day in value:
            if not 1 <= day <= 7:
                raise ValueError(f"weekday {day} is outside 1 (Monday) .. 7 (Sunday)")
        return tuple(sorted(set(value)))


class MonthlyRule(_RuleBase):
    type: Literal["monthly"] = "monthly"
    month_day: Optional[int] = Field(default=None, ge=1, le=31, alias="monthDay")
    nth_weekday: Optional[NthWeekday] = Field(default=None, alias="nthWeekday")

    @model_validator(mode="after")
    def _check_single_day_selector(self):
        if self.month_day is not None and self.nth_weekday is not None:
            raise ValueError("monthDay and nthWeekday cannot both be set")
        return self


class YearlyRule(_RuleBase):
    type: Literal["yearly"] = "yearly"


RecurrenceRule = Annotated[
    Union[DailyRule, WeeklyRule, MonthlyRule, YearlyRule],
    Field(discriminator="type"),
]

RULE_CLASSES = (DailyRule, WeeklyRule, MonthlyRule, YearlyRule)
