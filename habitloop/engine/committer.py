"""Completion committer for habitloop.

Turns a user "complete" action into exactly one create-log-entry write and,
only after the write succeeded, into a ``Complete`` event for the reducer.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel

from habitloop.engine.errors import HabitLoopError, WriteError
from habitloop.engine.rotation import current_category
from habitloop.engine.selector import CurrentTask
from habitloop.engine.state import Complete, EngineState
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.task_definition import TaskDefinition

logger = logging.getLogger(__name__)


class LogWriter(Protocol):
    def create_log_entry(
        self,
        definition_id: int,
        name: Optional[str] = None,
        amount: Optional[float] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> CompletionLogEntry:
        ...


class CommitResult(BaseModel):
    """Outcome of a successful commit."""

    entry: CompletionLogEntry
    event: Complete


def resolve_amount(definition: TaskDefinition, user_amount: Optional[float] = None) -> Optional[float]:
    """Effective amount: the definition's default if set (0 counts), else the user's, else None."""
    if definition.default_amount is not None:
        return definition.default_amount
    if user_amount is not None:
        return user_amount
    return None


def resolve_category(definition: TaskDefinition, state: EngineState) -> Optional[str]:
    return current_category(definition.categories, state.category_pointer.get(definition.id))


def describe_completion(task: CurrentTask, now: datetime) -> str:
    stamp = now.strftime("%H:%M")
    if task.hhmm:
        return f"Completed at {stamp} ({task.hhmm})"
    return f"Completed at {stamp}"


class CompletionCommitter:
    """Issues completion writes against a log writer."""

    def __init__(self, writer: LogWriter):
        self.writer = writer

    def commit(
        self,
        state: EngineState,
        task: CurrentTask,
        now: datetime,
        user_amount: Optional[float] = None,
        description: Optional[str] = None,
    ) -> CommitResult:
        """Write one log entry for ``task``.

        The state is only read. On success the returned ``Complete`` event
        carries the optimistic update for the reducer.

        Raises:
            WriteError: If the write failed; nothing should be applied
        """
        definition = task.definition
        amount = resolve_amount(definition, user_amount)
        category = resolve_category(definition, state)

        try:
            entry = self.writer.create_log_entry(
                definition.id,
                name=definition.name,
                amount=amount,
                description=description or describe_completion(task, now),
                category=category,
            )
        except WriteError:
            logger.error(f"Commit failed for definition {definition.id} slot {task.hhmm}")
            raise
        except HabitLoopError as e:
            logger.error(f"Commit failed for definition {definition.id} slot {task.hhmm}: {e}")
            raise WriteError(str(e)) from e

        logger.debug(f"Committed definition {definition.id} slot {task.hhmm} category {category}")
        return CommitResult(
            entry=entry,
            event=Complete(definition_id=definition.id, hhmm=task.hhmm, completed_at=now, category=category),
        )
