"""Data models for habitloop."""

from habitloop.models.task_definition import ScheduleEntry, TaskDefinition, validate_hhmm
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.occurrence import Occurrence

__all__ = [
    "ScheduleEntry",
    "TaskDefinition",
    "validate_hhmm",
    "CompletionLogEntry",
    "Occurrence",
]
