"""Release evaluation for habitloop."""

from datetime import datetime
from typing import Iterable, List

from habitloop.models.occurrence import Occurrence


def is_released(occurrence: Occurrence, now: datetime) -> bool:
    return occurrence.scheduled_at <= now


def released_occurrences(occurrences: Iterable[Occurrence], now: datetime) -> List[Occurrence]:
    """Return the occurrences whose trigger time is at or before ``now``.

    Pure filter. For a fixed day the result only grows as ``now`` advances.
    """
    return [occ for occ in occurrences if is_released(occ, now)]
