"""Category rotation for habitloop.

Definitions with a non-empty category list attach one label per completion,
cycling through the list round-robin.
"""

from typing import Iterable, Optional, Sequence

from habitloop.models.completion import CompletionLogEntry


def initial_pointer(categories: Sequence[str], entries: Iterable[CompletionLogEntry]) -> Optional[int]:
    """Compute the starting pointer from the log.

    The most recent entry (any day) bearing a non-empty category determines
    the pointer: the label after it in the list. Returns None for an empty
    category list, and 0 when no entry matches a label in the list.
    """
    if not categories:
        return None

    latest: Optional[CompletionLogEntry] = None
    for entry in entries:
        if not entry.has_category:
            continue
        if latest is None or entry.created_at > latest.created_at:
            latest = entry

    if latest is None:
        return 0

    label = latest.category.strip()
    try:
        index = list(categories).index(label)
    except ValueError:
        return 0
    return (index + 1) % len(categories)


def current_category(categories: Sequence[str], pointer: Optional[int]) -> Optional[str]:
    """Label the next completion will carry, or None for an empty list."""
    if not categories:
        return None
    return categories[(pointer or 0) % len(categories)]


def advance_pointer(categories: Sequence[str], pointer: Optional[int]) -> Optional[int]:
    if not categories:
        return None
    return ((pointer or 0) + 1) % len(categories)


def clamp_pointer(categories: Sequence[str], pointer: Optional[int]) -> Optional[int]:
    """Keep a stored pointer inside [0, len(categories)) after the list changed."""
    if not categories:
        return None
    return (pointer or 0) % len(categories)
