"""Request models for the habitloop API.

This is the definition-editing boundary: malformed schedules and times are
rejected here and never reach the engine.
"""

import math
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from habitloop.models.constants import DEFAULT_PRIORITY, MAX_PRIORITY, MIN_NAME_LENGTH, MIN_PRIORITY
from habitloop.models.task_definition import ScheduleEntry


def sanitize_categories(categories) -> List[str]:
    """Trim labels, drop blanks and case-insensitive duplicates, keep order."""
    if not isinstance(categories, list):
        return []
    out: List[str] = []
    seen = set()
    for category in categories:
        if not isinstance(category, str):
            continue
        value = category.strip()
        if not value:
            continue
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(value)
    return out


def coerce_non_negative_int(value, fallback: int = 0) -> int:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(n) or n < 0:
        return fallback
    return int(n)


def coerce_nullable_number(value) -> Optional[float]:
    """None for null, blank or non-numeric input; otherwise a float (0 stays 0)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def _validate_name(v: str) -> str:
    name = (v or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ValueError(f"name must be at least {MIN_NAME_LENGTH} characters")
    return name


def _validate_track_by(v: str) -> str:
    value = (v or "").strip()
    if not value:
        raise ValueError("trackBy is required")
    return value


class _DefinitionFields(BaseModel):
    """Validators shared by create and update requests."""

    @field_validator("schedules", mode="before", check_fields=False)
    @classmethod
    def _none_schedules(cls, v):
        return [] if v is None else v

    @field_validator("categories", mode="before", check_fields=False)
    @classmethod
    def _sanitize_categories(cls, v):
        return sanitize_categories(v)

    @field_validator("default_amount", mode="before", check_fields=False)
    @classmethod
    def _coerce_default_amount(cls, v):
        return coerce_nullable_number(v)

    @field_validator("yearly_goal", "monthly_goal", "weekly_goal", "daily_goal", mode="before", check_fields=False)
    @classmethod
    def _coerce_goal(cls, v):
        return coerce_non_negative_int(v, 0)


class TaskDefinitionCreate(_DefinitionFields):
    """Request model for creating a task definition."""

    user_id: str = Field(..., min_length=1, validation_alias=AliasChoices("user_id", "userId"))
    name: str
    schedules: List[ScheduleEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("schedules", "schedule"),
        description="Empty for an unscheduled loop",
    )
    priority: int = Field(DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    track_by: str = Field(..., validation_alias=AliasChoices("track_by", "trackBy"))
    categories: List[str] = Field(default_factory=list)
    default_amount: Optional[float] = Field(None, validation_alias=AliasChoices("default_amount", "defaultAmount"))
    yearly_goal: int = Field(0, validation_alias=AliasChoices("yearly_goal", "yearlyGoal"))
    monthly_goal: int = Field(0, validation_alias=AliasChoices("monthly_goal", "monthlyGoal"))
    weekly_goal: int = Field(0, validation_alias=AliasChoices("weekly_goal", "weeklyGoal"))
    daily_goal: int = Field(0, validation_alias=AliasChoices("daily_goal", "dailyGoal"))
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _validate_name(v)

    @field_validator("track_by")
    @classmethod
    def _track_by(cls, v: str) -> str:
        return _validate_track_by(v)

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, v):
        return DEFAULT_PRIORITY if v is None else v


class TaskDefinitionUpdate(_DefinitionFields):
    """Request model for a partial update; absent fields stay unchanged."""

    name: Optional[str] = None
    schedules: Optional[List[ScheduleEntry]] = Field(None, validation_alias=AliasChoices("schedules", "schedule"))
    priority: Optional[int] = Field(None, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    track_by: Optional[str] = Field(None, validation_alias=AliasChoices("track_by", "trackBy"))
    categories: Optional[List[str]] = None
    default_amount: Optional[float] = Field(None, validation_alias=AliasChoices("default_amount", "defaultAmount"))
    yearly_goal: Optional[int] = Field(None, validation_alias=AliasChoices("yearly_goal", "yearlyGoal"))
    monthly_goal: Optional[int] = Field(None, validation_alias=AliasChoices("monthly_goal", "monthlyGoal"))
    weekly_goal: Optional[int] = Field(None, validation_alias=AliasChoices("weekly_goal", "weeklyGoal"))
    daily_goal: Optional[int] = Field(None, validation_alias=AliasChoices("daily_goal", "dailyGoal"))
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _validate_name(v)

    @field_validator("track_by")
    @classmethod
    def _track_by(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _validate_track_by(v)


class CompletionLogEntryCreate(BaseModel):
    """Request model for appending a completion log entry."""

    definition_id: int = Field(..., validation_alias=AliasChoices("definition_id", "taskTypeID", "tasktypeid"))
    name: Optional[str] = None
    amount: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = Field(None, validation_alias=AliasChoices("category", "taskCategory", "taskcategory"))

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return coerce_nullable_number(v)

    @field_validator("category", "name")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None
