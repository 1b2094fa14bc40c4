"""Engine state and reducer for habitloop.

Every engine transition is expressed as ``reduce(state, event) -> state``
over four events: ``Tick``, ``Reload``, ``Complete`` and ``Skip``. The reducer
is pure: it never mutates the state it receives and performs no I/O, which
keeps selection ordering unit-testable without timers or a network.
"""

import logging
from datetime import date, datetime, tzinfo
from functools import lru_cache
from typing import Dict, FrozenSet, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from habitloop.engine.clock import to_local
from habitloop.engine.rotation import advance_pointer, clamp_pointer
from habitloop.engine.tracker import reconcile
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.task_definition import TaskDefinition

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def resolve_time_zone(name: Optional[str]) -> Optional[tzinfo]:
    """IANA zone for ``name``; None means naive process-local time."""
    return ZoneInfo(name) if name else None


class EngineState(BaseModel):
    """Local engine state for one user."""

    time_zone: Optional[str] = Field(None, description="IANA zone name; None = process local time")
    definitions: List[TaskDefinition] = Field(default_factory=list)
    today: Optional[date] = None
    now: Optional[datetime] = None
    completed_occurrences: FrozenSet[Tuple[int, str]] = Field(default_factory=frozenset)
    last_completed_at: Dict[int, datetime] = Field(default_factory=dict)
    category_pointer: Dict[int, int] = Field(default_factory=dict)
    unscheduled_cursor: int = 0

    @field_validator("time_zone")
    @classmethod
    def _known_time_zone(cls, v: Optional[str]) -> Optional[str]:
        try:
            resolve_time_zone(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {v}")
        return v

    @property
    def zone(self) -> Optional[tzinfo]:
        return resolve_time_zone(self.time_zone)

    def definition(self, definition_id: int) -> Optional[TaskDefinition]:
        for definition in self.definitions:
            if definition.id == definition_id:
                return definition
        return None


class Tick(BaseModel):
    """Time moved forward."""

    now: datetime


class Reload(BaseModel):
    """Fresh definitions and log entries arrived from the store.

    ``logs`` maps definition id to its entries; None marks a failed fetch.
    """

    definitions: List[TaskDefinition]
    logs: Dict[int, Optional[List[CompletionLogEntry]]] = Field(default_factory=dict)
    now: datetime


class Complete(BaseModel):
    """A completion write for the current task succeeded."""

    definition_id: int
    hhmm: Optional[str] = Field(None, description="Slot for scheduled tasks; None for unscheduled")
    completed_at: datetime
    category: Optional[str] = Field(None, description="Label attached to the written entry")


class Skip(BaseModel):
    """The user skipped the current task."""

    definition_id: int
    hhmm: Optional[str] = None


EngineEvent = Union[Tick, Reload, Complete, Skip]


def reduce(state: EngineState, event: EngineEvent) -> EngineState:
    """Apply one event and return the new state."""
    if isinstance(event, Tick):
        return _roll_to(state, event.now)
    if isinstance(event, Reload):
        return _on_reload(state, event)
    if isinstance(event, Complete):
        return _on_complete(state, event)
    if isinstance(event, Skip):
        return _on_skip(state, event)
    raise TypeError(f"Unknown engine event: {type(event).__name__}")


def _roll_to(state: EngineState, now: datetime) -> EngineState:
    """Advance "now", clearing today's completions when the local date changed."""
    local = to_local(now, state.zone)
    if state.today == local.date():
        return state.model_copy(update={"now": local})

    if state.today is not None:
        logger.info(f"Day rollover {state.today} -> {local.date()}; clearing completed occurrences")
    return state.model_copy(
        update={
            "now": local,
            "today": local.date(),
            "completed_occurrences": frozenset(),
        }
    )


def _on_reload(state: EngineState, event: Reload) -> EngineState:
    state = _roll_to(state, event.now)
    tz = state.zone
    definitions = [d for d in event.definitions if d.is_active]
    result = reconcile(definitions, event.logs, state.today, tz)

    # Within a day the completed set only grows: local skips and writes that
    # are not yet visible in the log survive a reload.
    completed = state.completed_occurrences | result.completed_occurrences

    last_completed_at: Dict[int, datetime] = {}
    category_pointer: Dict[int, int] = {}
    for definition in definitions:
        item = result.by_definition[definition.id]
        previous_pointer = state.category_pointer.get(definition.id)
        previous = state.last_completed_at.get(definition.id)
        if item.fetch_failed:
            pointer = clamp_pointer(definition.categories, previous_pointer)
        else:
            pointer = item.category_pointer
            # A local completion newer than anything in the log has not become
            # visible yet; its pointer is the fresher one.
            if previous_pointer is not None and previous is not None and (
                item.last_completed_at is None or previous > item.last_completed_at
            ):
                pointer = clamp_pointer(definition.categories, previous_pointer)
            latest = item.last_completed_at
            if previous is not None and (latest is None or previous > latest):
                latest = previous
            if latest is not None:
                last_completed_at[definition.id] = latest

        if pointer is not None:
            category_pointer[definition.id] = pointer

    return state.model_copy(
        update={
            "definitions": definitions,
            "completed_occurrences": completed,
            "last_completed_at": last_completed_at,
            "category_pointer": category_pointer,
        }
    )


def _on_complete(state: EngineState, event: Complete) -> EngineState:
    definition = state.definition(event.definition_id)
    if definition is None:
        logger.warning(f"Completion for unknown definition {event.definition_id} ignored")
        return state

    update = {
        "last_completed_at": {
            **state.last_completed_at,
            definition.id: to_local(event.completed_at, state.zone),
        },
    }
    if event.hhmm is not None:
        update["completed_occurrences"] = state.completed_occurrences | {(definition.id, event.hhmm)}
    else:
        update["unscheduled_cursor"] = state.unscheduled_cursor + 1

    if definition.categories:
        if event.category in definition.categories:
            pointer = (definition.categories.index(event.category) + 1) % len(definition.categories)
        else:
            pointer = advance_pointer(definition.categories, state.category_pointer.get(definition.id))
        update["category_pointer"] = {**state.category_pointer, definition.id: pointer}
    return state.model_copy(update=update)


def _on_skip(state: EngineState, event: Skip) -> EngineState:
    if event.hhmm is not None:
        # Suppresses only this slot for today; never carried forward
        return state.model_copy(
            update={"completed_occurrences": state.completed_occurrences | {(event.definition_id, event.hhmm)}}
        )
    return state.model_copy(update={"unscheduled_cursor": state.unscheduled_cursor + 1})
