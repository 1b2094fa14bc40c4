"""Completion tracking for habitloop.

Reconciles per-definition completion state from the append-only log.

The log has no slot identifier, so scheduled definitions use a count-based
approximation: if N entries were created today, the first N of today's
scheduled times (sorted ascending) are treated as completed. This mirrors
what the log can actually tell us and must not be replaced by guessed
slot-matching. If the log ever gains a slot identifier, switch to exact
matching on that field.
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from habitloop.engine.clock import to_local
from habitloop.engine.occurrences import day_of_week
from habitloop.engine.rotation import initial_pointer
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.task_definition import TaskDefinition

logger = logging.getLogger(__name__)


class DefinitionCompletion(BaseModel):
    """Reconciled completion state for one definition."""

    definition_id: int
    today_count: int = 0
    completed_slots: List[str] = Field(default_factory=list)
    last_completed_at: Optional[datetime] = None
    category_pointer: Optional[int] = None
    fetch_failed: bool = False


class Reconciliation(BaseModel):
    """Result of reconciling all definitions against the log."""

    by_definition: Dict[int, DefinitionCompletion] = Field(default_factory=dict)

    @property
    def completed_occurrences(self) -> FrozenSet[Tuple[int, str]]:
        return frozenset(
            (def_id, hhmm)
            for def_id, item in self.by_definition.items()
            for hhmm in item.completed_slots
        )

    @property
    def last_completed_at(self) -> Dict[int, datetime]:
        return {
            def_id: item.last_completed_at
            for def_id, item in self.by_definition.items()
            if item.last_completed_at is not None
        }

    @property
    def failed_definition_ids(self) -> List[int]:
        return [def_id for def_id, item in self.by_definition.items() if item.fetch_failed]


def count_today(entries: Iterable[CompletionLogEntry], today: date, tz: Optional[tzinfo] = None) -> int:
    """Count entries created on the local calendar day ``today``."""
    return sum(1 for entry in entries if to_local(entry.created_at, tz).date() == today)


def completed_slots(definition: TaskDefinition, count: int, today: date) -> List[str]:
    """Mark the first ``count`` of today's times (earliest first) as completed."""
    if count <= 0:
        return []
    times = sorted(definition.times_on(day_of_week(today)))
    return times[:count]


def most_recent_completion(
    entries: Iterable[CompletionLogEntry],
    tz: Optional[tzinfo] = None,
) -> Optional[datetime]:
    """Local timestamp of the newest entry, or None when there are none ("never")."""
    latest: Optional[datetime] = None
    for entry in entries:
        if latest is None or entry.created_at > latest:
            latest = entry.created_at
    return to_local(latest, tz) if latest is not None else None


def reconcile_definition(
    definition: TaskDefinition,
    entries: Optional[Sequence[CompletionLogEntry]],
    today: date,
    tz: Optional[tzinfo] = None,
) -> DefinitionCompletion:
    """Reconcile one definition. ``entries`` is None when its fetch failed."""
    if entries is None:
        # Degrade to "zero completions today / never" so the task stays visible
        return DefinitionCompletion(definition_id=definition.id, fetch_failed=True)

    count = count_today(entries, today, tz)
    slots = completed_slots(definition, count, today) if not definition.is_unscheduled else []
    return DefinitionCompletion(
        definition_id=definition.id,
        today_count=count,
        completed_slots=slots,
        last_completed_at=most_recent_completion(entries, tz),
        category_pointer=initial_pointer(definition.categories, entries),
    )


def reconcile(
    definitions: Iterable[TaskDefinition],
    logs: Mapping[int, Optional[Sequence[CompletionLogEntry]]],
    today: date,
    tz: Optional[tzinfo] = None,
) -> Reconciliation:
    """Reconcile every definition against its fetched log entries.

    Args:
        definitions: Active definitions
        logs: Map of definition id to its entries; None marks a failed fetch
        today: Local calendar date
        tz: Engine time zone (None = process local time)

    Returns:
        Reconciliation keyed by definition id
    """
    result = Reconciliation()
    for definition in definitions:
        item = reconcile_definition(definition, logs.get(definition.id), today, tz)
        if item.fetch_failed:
            logger.warning(f"Log fetch failed for definition {definition.id}; treating as never completed")
        result.by_definition[definition.id] = item
    return result
