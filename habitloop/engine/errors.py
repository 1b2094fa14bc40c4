"""Error taxonomy for the habitloop engine."""


class HabitLoopError(Exception):
    """Base class for engine errors."""


class NetworkError(HabitLoopError):
    """A fetch from the definition store failed or timed out.

    Prior engine state is retained; the caller may retry.
    """


class WriteError(HabitLoopError):
    """Creating a completion log entry failed.

    No local state was changed; the identical action may be retried.
    """


class CommitInProgressError(HabitLoopError):
    """A completion write is already in flight for this engine."""
