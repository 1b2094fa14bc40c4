"""Task definition data model for habitloop.

A task definition is a recurring task template. It is either tied to a weekly
time-of-day schedule or, when no weekday lists any time, runs as an
unscheduled loop.

Rows reach this model from several places (the database layer, the HTTP
client, request bodies) and historically use different field spellings
(``defaultAmount`` vs ``defaultamount``, ``schedules`` vs ``schedule``...).
All of them are accepted here so the engine only ever sees one shape.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from habitloop.models.constants import (
    DEFAULT_PRIORITY,
    HHMM_RE,
    MAX_DAY_OF_WEEK,
    MAX_PRIORITY,
    MIN_DAY_OF_WEEK,
    MIN_PRIORITY,
)


def validate_hhmm(value: str) -> str:
    """Validate a 24-hour "HH:MM" string.

    Raises:
        ValueError: If the value is not a zero-padded 24-hour time
    """
    if not isinstance(value, str) or not HHMM_RE.match(value):
        raise ValueError(f"Invalid time {value!r} (use HH:MM 24h)")
    return value


def _blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class ScheduleEntry(BaseModel):
    """Times of day at which a definition releases on one weekday."""

    day_of_week: int = Field(
        ...,
        ge=MIN_DAY_OF_WEEK,
        le=MAX_DAY_OF_WEEK,
        validation_alias=AliasChoices("day_of_week", "dayOfWeek", "dayofweek"),
        description="0 = Sunday ... 6 = Saturday",
    )
    times: List[str] = Field(default_factory=list, description="Release times as HH:MM (24h)")

    @field_validator("times", mode="before")
    @classmethod
    def _none_times_to_empty(cls, v):
        return [] if v is None else v

    @field_validator("times")
    @classmethod
    def _validate_times(cls, v: List[str]) -> List[str]:
        # One occurrence per (definition, time); repeats collapse, order kept
        times: List[str] = []
        for t in v:
            validate_hhmm(t)
            if t not in times:
                times.append(t)
        return times


class TaskDefinition(BaseModel):
    """Canonical, normalized task definition."""

    id: int = Field(..., description="Definition identifier")
    user_id: str = Field(
        ...,
        validation_alias=AliasChoices("user_id", "userId", "owner"),
        description="Owner of the definition",
    )
    name: str = Field(..., description="Display name, e.g. 'Drink water'")
    schedule: List[ScheduleEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("schedule", "schedules"),
        description="Weekly schedule; empty means unscheduled",
    )
    priority: int = Field(DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY, description="1 highest .. 10 lowest")
    track_by: str = Field("", validation_alias=AliasChoices("track_by", "trackBy", "trackby"))
    categories: List[str] = Field(default_factory=list, description="Ordered category labels for round-robin")
    default_amount: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("default_amount", "defaultAmount", "defaultamount"),
        description="Amount recorded on completion; None means unset (distinct from 0)",
    )
    yearly_goal: int = Field(0, ge=0, validation_alias=AliasChoices("yearly_goal", "yearlyGoal", "yearlygoal"))
    monthly_goal: int = Field(0, ge=0, validation_alias=AliasChoices("monthly_goal", "monthlyGoal", "monthlygoal"))
    weekly_goal: int = Field(0, ge=0, validation_alias=AliasChoices("weekly_goal", "weeklyGoal", "weeklygoal"))
    daily_goal: int = Field(0, ge=0, validation_alias=AliasChoices("daily_goal", "dailyGoal", "dailygoal"))
    is_active: bool = Field(True, validation_alias=AliasChoices("is_active", "isActive", "active"))
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("schedule", "categories", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v

    @field_validator("track_by", mode="before")
    @classmethod
    def _none_track_by(cls, v):
        return "" if v is None else v

    @field_validator("default_amount", mode="before")
    @classmethod
    def _blank_default_amount(cls, v):
        return _blank_to_none(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_unscheduled(self) -> bool:
        """True when no weekday lists any release time."""
        return not any(entry.times for entry in self.schedule)

    def times_on(self, day_of_week: int) -> List[str]:
        """Release times listed for a weekday (0 = Sunday), in schedule order."""
        for entry in self.schedule:
            if entry.day_of_week == day_of_week:
                return list(entry.times)
        return []
