"""Current-task selection for habitloop.

Two tiers decide the single task to show:

1. Scheduled: among released, not-yet-completed occurrences, the minimum by
   priority, then scheduled time, then definition id, then hhmm. A
   higher-priority task that releases later preempts whatever is showing on
   the next evaluation.
2. Unscheduled fallback, only when tier 1 is empty: unscheduled definitions
   ranked by starvation (days since last completion, "never" first), then
   priority, then id. The definition at ``unscheduled_cursor`` (mod length)
   is shown.

Selection is deterministic: the same state always yields the same task.
"""

from datetime import date, datetime
from enum import Enum
from typing import AbstractSet, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from habitloop.engine.occurrences import generate_occurrences, is_unscheduled
from habitloop.engine.release import released_occurrences
from habitloop.engine.state import EngineState
from habitloop.models.occurrence import Occurrence
from habitloop.models.task_definition import TaskDefinition


class SelectionTier(str, Enum):
    """Which tier produced the current task."""
    SCHEDULED = "scheduled"
    UNSCHEDULED = "unscheduled"


class CurrentTask(BaseModel):
    """The single task the user should act on right now."""

    tier: SelectionTier
    definition: TaskDefinition
    occurrence: Optional[Occurrence] = None

    @property
    def definition_id(self) -> int:
        return self.definition.id

    @property
    def hhmm(self) -> Optional[str]:
        return self.occurrence.hhmm if self.occurrence else None

    @property
    def is_scheduled(self) -> bool:
        return self.tier == SelectionTier.SCHEDULED


def occurrence_sort_key(occurrence: Occurrence) -> Tuple[int, datetime, int, str]:
    return (occurrence.priority, occurrence.scheduled_at, occurrence.definition_id, occurrence.hhmm)


def select_scheduled(
    released: Iterable[Occurrence],
    completed: AbstractSet[Tuple[int, str]],
) -> Optional[Occurrence]:
    """Tier 1: the first pending released occurrence under the total order."""
    pending = [occ for occ in released if occ.key not in completed]
    if not pending:
        return None
    return min(pending, key=occurrence_sort_key)


def days_since(last_completed_at: Optional[datetime], today: date) -> Optional[int]:
    """Calendar days between the last completion and today; None means never."""
    if last_completed_at is None:
        return None
    return (today - last_completed_at.date()).days


def rank_unscheduled(
    definitions: Iterable[TaskDefinition],
    last_completed_at: Dict[int, datetime],
    today: date,
) -> List[TaskDefinition]:
    """Rank active unscheduled definitions, most starved first."""

    def sort_key(definition: TaskDefinition) -> tuple:
        days = days_since(last_completed_at.get(definition.id), today)
        # Never-completed sorts ahead of any finite starvation
        starvation = (0, 0) if days is None else (1, -days)
        return (starvation, definition.priority, definition.id)

    candidates = [d for d in definitions if d.is_active and is_unscheduled(d)]
    return sorted(candidates, key=sort_key)


def select_unscheduled(ranked: List[TaskDefinition], cursor: int) -> Optional[TaskDefinition]:
    """Tier 2: the ranked definition at ``cursor`` (mod length)."""
    if not ranked:
        return None
    return ranked[cursor % len(ranked)]


def select_current(state: EngineState) -> Optional[CurrentTask]:
    """Resolve the current task for ``state``, or None when idle."""
    if state.now is None or state.today is None:
        return None

    occurrences = generate_occurrences(state.definitions, state.today, state.zone)
    released = released_occurrences(occurrences, state.now)
    occurrence = select_scheduled(released, state.completed_occurrences)
    if occurrence is not None:
        return CurrentTask(
            tier=SelectionTier.SCHEDULED,
            definition=state.definition(occurrence.definition_id),
            occurrence=occurrence,
        )

    ranked = rank_unscheduled(state.definitions, state.last_completed_at, state.today)
    definition = select_unscheduled(ranked, state.unscheduled_cursor)
    if definition is not None:
        return CurrentTask(tier=SelectionTier.UNSCHEDULED, definition=definition)

    return None
