"""Occurrence model for habitloop."""

from datetime import datetime
from typing import Tuple

from pydantic import BaseModel, Field


class Occurrence(BaseModel):
    """One concrete release of a scheduled definition for today.

    Derived on every evaluation and never persisted. Identity is
    (definition_id, hhmm) within the current local day.
    """

    definition_id: int
    name: str
    priority: int
    hhmm: str = Field(..., description="Release time as HH:MM (24h)")
    scheduled_at: datetime = Field(..., description="Today at hhmm, local time")

    @property
    def key(self) -> Tuple[int, str]:
        return (self.definition_id, self.hhmm)
