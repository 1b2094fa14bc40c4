"""Occurrence generation for habitloop.

Expands each scheduled definition into today's release slots.
"""

from datetime import date, datetime, time, tzinfo
from typing import Iterable, List, Optional

from habitloop.models.occurrence import Occurrence
from habitloop.models.task_definition import TaskDefinition


def day_of_week(day: date) -> int:
    """Day of week using the 0 = Sunday ... 6 = Saturday convention."""
    # Python weekday: Monday=0 ... Sunday=6
    return (day.weekday() + 1) % 7


def is_unscheduled(definition: TaskDefinition) -> bool:
    """True when the definition runs as an unscheduled loop."""
    return definition.is_unscheduled


def parse_hhmm(hhmm: str) -> time:
    hours, minutes = hhmm.split(":")
    return time(int(hours), int(minutes))


def scheduled_at(day: date, hhmm: str, tz: Optional[tzinfo] = None) -> datetime:
    """Local datetime for ``hhmm`` on ``day``."""
    return datetime.combine(day, parse_hhmm(hhmm), tzinfo=tz)


def generate_occurrences(
    definitions: Iterable[TaskDefinition],
    today: date,
    tz: Optional[tzinfo] = None,
) -> List[Occurrence]:
    """Generate today's occurrences for scheduled, active definitions.

    One occurrence is emitted per time listed for today's weekday. Definitions
    with no schedule entry for today produce nothing, and unscheduled
    definitions are never expanded.

    Args:
        definitions: Normalized task definitions
        today: Local calendar date to expand
        tz: Time zone attached to ``scheduled_at``

    Returns:
        Occurrences in definition order, then schedule order
    """
    dow = day_of_week(today)
    occurrences: List[Occurrence] = []
    for definition in definitions:
        if not definition.is_active or is_unscheduled(definition):
            continue
        for hhmm in definition.times_on(dow):
            occurrences.append(
                Occurrence(
                    definition_id=definition.id,
                    name=definition.name,
                    priority=definition.priority,
                    hhmm=hhmm,
                    scheduled_at=scheduled_at(today, hhmm, tz),
                )
            )
    return occurrences
