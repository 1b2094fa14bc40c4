"""Clock driver for habitloop.

Two self-rearming timers re-evaluate the engine: one at every minute boundary
and one at local midnight. Each delay is computed as the exact distance to
the next wall-clock boundary rather than a fixed interval, so the timers do
not drift across process suspension.
"""

import logging
import threading
from datetime import datetime, time, timedelta, tzinfo
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Fire just after the boundary so "now" is already on the far side of it
BOUNDARY_SLACK_SEC = 0.05


def local_now(tz: Optional[tzinfo] = None) -> datetime:
    """Current local time; naive process-local time when ``tz`` is None."""
    return datetime.now(tz) if tz is not None else datetime.now()


def to_local(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Express ``dt`` in the engine's local time.

    With ``tz`` None the engine works in naive process-local time; aware
    values are converted and stripped. Naive values are taken as already local.
    """
    if tz is None:
        if dt.tzinfo is None:
            return dt
        return dt.astimezone().replace(tzinfo=None)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def next_minute(now: datetime) -> datetime:
    return now.replace(second=0, microsecond=0) + timedelta(minutes=1)


def next_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date() + timedelta(days=1), time(0, 0), tzinfo=now.tzinfo)


def seconds_until_next_minute(now: datetime) -> float:
    return next_minute(now).timestamp() - now.timestamp()


def seconds_until_midnight(now: datetime) -> float:
    # timestamp() keeps DST transitions honest for aware and naive-local values
    return next_midnight(now).timestamp() - now.timestamp()


class ClockDriver:
    """Minute and midnight timers.

    Callbacks run on timer threads; the receiver is responsible for
    serializing them with the rest of its state transitions.
    """

    def __init__(
        self,
        on_minute: Callable[[], None],
        on_midnight: Callable[[], None],
        now_fn: Callable[[], datetime] = datetime.now,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self._on_minute = on_minute
        self._on_midnight = on_midnight
        self._now_fn = now_fn
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._running = False
        self._minute_timer: Optional[threading.Timer] = None
        self._midnight_timer: Optional[threading.Timer] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._arm_minute()
            self._arm_midnight()
        logger.debug("Clock driver started")

    def stop(self) -> None:
        """Cancel both timers. Safe to call more than once."""
        with self._lock:
            self._running = False
            for timer in (self._minute_timer, self._midnight_timer):
                if timer is not None:
                    timer.cancel()
            self._minute_timer = None
            self._midnight_timer = None
        logger.debug("Clock driver stopped")

    def _arm_minute(self) -> None:
        delay = seconds_until_next_minute(self._now_fn()) + BOUNDARY_SLACK_SEC
        self._minute_timer = self._start_timer(delay, self._fire_minute)

    def _arm_midnight(self) -> None:
        delay = seconds_until_midnight(self._now_fn()) + BOUNDARY_SLACK_SEC
        self._midnight_timer = self._start_timer(delay, self._fire_midnight)

    def _start_timer(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = self._timer_factory(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def _fire_minute(self) -> None:
        self._fire(self._on_minute, self._arm_minute, "minute")

    def _fire_midnight(self) -> None:
        self._fire(self._on_midnight, self._arm_midnight, "midnight")

    def _fire(self, callback: Callable[[], None], rearm: Callable[[], None], label: str) -> None:
        if not self._running:
            return
        try:
            callback()
        except Exception:
            logger.exception(f"{label} tick failed")
        with self._lock:
            if self._running:
                rearm()
