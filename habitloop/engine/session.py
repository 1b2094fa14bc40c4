"""Engine session for habitloop.

``HabitEngine`` wires the definition store, the reducer, the committer and the
clock driver together for one user. All state transitions run under one lock;
network calls run outside it.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol

from dotenv import load_dotenv

from habitloop.engine.clock import ClockDriver, local_now
from habitloop.engine.committer import CommitResult, CompletionCommitter
from habitloop.engine.errors import CommitInProgressError, HabitLoopError, NetworkError, WriteError
from habitloop.engine.selector import CurrentTask, select_current
from habitloop.engine.state import EngineEvent, EngineState, Reload, Skip, Tick, reduce
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.constants import DEFAULT_FETCH_WORKERS
from habitloop.models.task_definition import TaskDefinition

load_dotenv()

logger = logging.getLogger(__name__)


class DefinitionStore(Protocol):
    def list_definitions(self, user_id: str, active_only: bool = True) -> List[TaskDefinition]:
        ...

    def list_log_entries(self, definition_id: int) -> List[CompletionLogEntry]:
        ...

    def create_log_entry(
        self,
        definition_id: int,
        name: Optional[str] = None,
        amount: Optional[float] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> CompletionLogEntry:
        ...


class HabitEngine:
    """Release and selection engine for one user."""

    def __init__(
        self,
        store: DefinitionStore,
        user_id: str,
        time_zone: Optional[str] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
        fetch_workers: Optional[int] = None,
        listener: Optional[Callable[[Optional[CurrentTask]], None]] = None,
        clock_factory: Callable[..., ClockDriver] = ClockDriver,
    ):
        """Initialize the engine.

        Args:
            store: Definition store (normally a HabitApiClient)
            user_id: Owner whose definitions are tracked
            time_zone: IANA zone for the local day. If None, reads
                HABITLOOP_TIME_ZONE, falling back to process local time.
            now_fn: Clock override (tests)
            fetch_workers: Bound on parallel log fetches. If None, reads
                HABITLOOP_FETCH_WORKERS.
            listener: Called with the current task after every transition
            clock_factory: ClockDriver override (tests)

        Raises:
            ValueError: If the time zone name is unknown
        """
        self.store = store
        self.user_id = user_id
        if time_zone is None:
            time_zone = os.getenv("HABITLOOP_TIME_ZONE") or None
        self._state = EngineState(time_zone=time_zone)
        self._now_fn = now_fn or (lambda: local_now(self._state.zone))
        self._fetch_workers = int(fetch_workers or os.getenv("HABITLOOP_FETCH_WORKERS", DEFAULT_FETCH_WORKERS))
        self._listener = listener
        self._clock_factory = clock_factory
        self._clock: Optional[ClockDriver] = None
        self._committer = CompletionCommitter(store)

        self._lock = threading.RLock()
        self._generation = 0
        self._busy = False
        self.last_error: Optional[HabitLoopError] = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def busy(self) -> bool:
        """True while a completion write is in flight."""
        return self._busy

    def now(self) -> datetime:
        return self._now_fn()

    def current(self) -> Optional[CurrentTask]:
        with self._lock:
            return select_current(self._state)

    def dispatch(self, event: EngineEvent) -> EngineState:
        with self._lock:
            self._state = reduce(self._state, event)
            return self._state

    def _notify(self) -> Optional[CurrentTask]:
        task = self.current()
        if self._listener is not None:
            self._listener(task)
        return task

    # -- clock-driven -----------------------------------------------------

    def tick(self, now: Optional[datetime] = None) -> Optional[CurrentTask]:
        """Refresh "now" and re-resolve the current task."""
        self.dispatch(Tick(now=now or self._now_fn()))
        return self._notify()

    def reload(self) -> bool:
        """Re-fetch definitions and logs and reconcile them.

        Returns:
            True if the reload was applied; False if the definition fetch
            failed (state retained, ``last_error`` set) or a newer reload
            superseded this one.
        """
        try:
            definitions = self.store.list_definitions(self.user_id, active_only=True)
        except NetworkError as e:
            logger.warning(f"Definition fetch failed for user {self.user_id}: {e}")
            self.last_error = e
            return False

        # Only a reload that has definitions to apply supersedes older ones
        with self._lock:
            self._generation += 1
            generation = self._generation

        definitions = [d for d in definitions if d.is_active]
        logs = self._fetch_logs(definitions)

        with self._lock:
            if generation != self._generation:
                logger.info(f"Reload {generation} superseded by {self._generation}; discarding results")
                return False
            self._state = reduce(self._state, Reload(definitions=definitions, logs=logs, now=self._now_fn()))
            self.last_error = None

        logger.debug(f"Reloaded {len(definitions)} definitions for user {self.user_id}")
        self._notify()
        return True

    def _fetch_logs(self, definitions: List[TaskDefinition]) -> Dict[int, Optional[List[CompletionLogEntry]]]:
        """Fetch every definition's log in parallel; a failed fetch maps to None."""
        if not definitions:
            return {}

        workers = max(1, min(self._fetch_workers, len(definitions)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {d.id: pool.submit(self.store.list_log_entries, d.id) for d in definitions}

        logs: Dict[int, Optional[List[CompletionLogEntry]]] = {}
        for definition_id, future in futures.items():
            try:
                logs[definition_id] = future.result()
            except HabitLoopError as e:
                logger.warning(f"Log fetch failed for definition {definition_id}: {e}")
                logs[definition_id] = None
        return logs

    def _on_midnight(self) -> None:
        self.tick()
        self.reload()

    # -- user actions -----------------------------------------------------

    def complete(
        self,
        amount: Optional[float] = None,
        description: Optional[str] = None,
    ) -> Optional[CommitResult]:
        """Complete the current task.

        Returns:
            The commit result, or None when there is no current task

        Raises:
            CommitInProgressError: If a previous write is still in flight
            WriteError: If the write failed; local state is unchanged
        """
        with self._lock:
            if self._busy:
                raise CommitInProgressError("A completion is already being saved")
            task = select_current(self._state)
            if task is None:
                return None
            snapshot = self._state
            self._busy = True

        try:
            result = self._committer.commit(snapshot, task, self._now_fn(), user_amount=amount, description=description)
            with self._lock:
                self._state = reduce(self._state, result.event)
                self.last_error = None
        except WriteError as e:
            self.last_error = e
            raise
        finally:
            with self._lock:
                self._busy = False

        self._notify()
        return result

    def skip(self) -> Optional[CurrentTask]:
        """Skip the current task without writing a log entry.

        Returns:
            The task that was skipped, or None when idle
        """
        with self._lock:
            task = select_current(self._state)
            if task is None:
                return None
            self._state = reduce(self._state, Skip(definition_id=task.definition_id, hhmm=task.hhmm))
        logger.debug(f"Skipped definition {task.definition_id} slot {task.hhmm}")
        self._notify()
        return task

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        """Load state and arm the minute and midnight timers."""
        self.reload()
        self.tick()
        with self._lock:
            if self._clock is None:
                self._clock = self._clock_factory(
                    on_minute=self.tick,
                    on_midnight=self._on_midnight,
                    now_fn=self._now_fn,
                )
                self._clock.start()

    def close(self) -> None:
        """Dispose the timers. Safe to call more than once."""
        with self._lock:
            clock, self._clock = self._clock, None
        if clock is not None:
            clock.stop()

    def __enter__(self) -> "HabitEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
