"""Task release and selection engine for habitloop."""

from habitloop.engine.errors import HabitLoopError, NetworkError, WriteError, CommitInProgressError
from habitloop.engine.occurrences import generate_occurrences, is_unscheduled, day_of_week
from habitloop.engine.release import released_occurrences
from habitloop.engine.state import EngineState, Tick, Reload, Complete, Skip, reduce
from habitloop.engine.selector import CurrentTask, SelectionTier, select_current
from habitloop.engine.committer import CompletionCommitter, CommitResult
from habitloop.engine.clock import ClockDriver
from habitloop.engine.session import HabitEngine

__all__ = [
    "HabitLoopError",
    "NetworkError",
    "WriteError",
    "CommitInProgressError",
    "generate_occurrences",
    "is_unscheduled",
    "day_of_week",
    "released_occurrences",
    "EngineState",
    "Tick",
    "Reload",
    "Complete",
    "Skip",
    "reduce",
    "CurrentTask",
    "SelectionTier",
    "select_current",
    "CompletionCommitter",
    "CommitResult",
    "ClockDriver",
    "HabitEngine",
]
