"""Completion log entry model for habitloop."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class CompletionLogEntry(BaseModel):
    """One append-only completion record for a task definition.

    The log carries no slot identifier: an entry says *that* a definition was
    completed at ``created_at``, not *which* scheduled time it satisfied.
    """

    id: int = Field(..., description="Log entry identifier")
    definition_id: int = Field(
        ...,
        validation_alias=AliasChoices("definition_id", "taskTypeID", "tasktypeid", "task_type_id"),
    )
    name: Optional[str] = None
    amount: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("category", "taskCategory", "taskcategory", "task_category"),
    )
    created_at: datetime = Field(..., validation_alias=AliasChoices("created_at", "createdAt"))

    @field_validator("amount", mode="before")
    @classmethod
    def _blank_amount(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are stored and sent as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def has_category(self) -> bool:
        return bool(self.category and self.category.strip())
