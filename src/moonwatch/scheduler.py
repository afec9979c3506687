"""Fixed-period refresh loop with an injectable clock.

The scheduler never spawns threads. Something cooperative (a Streamlit rerun, the
CLI loop, a test) calls run_pending(), which fires once when the deadline has
passed, however many periods went by unpumped. Deadlines advance from the tick
time by the interval, not from when the acquisition finished, and nothing stops
a manual trigger_now() from overlapping a periodic tick.
"""

import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Protocol

from moonwatch.models import SchedulerState

log = logging.getLogger(__name__)


class Clock(Protocol):
    def now_ms(self) -> int: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class RefreshScheduler:
    """Calls `acquire` once on start and then once per interval until stopped."""

    def __init__(self, acquire: Callable[[], object], clock: Clock | None = None) -> None:
        self._acquire = acquire
        self._clock = clock or SystemClock()
        self._interval_ms: int | None = None
        self._next_deadline_ms: int | None = None
        self._state = SchedulerState.IDLE

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def interval_ms(self) -> int | None:
        return self._interval_ms

    @property
    def next_deadline_ms(self) -> int | None:
        return self._next_deadline_ms

    @property
    def running(self) -> bool:
        return self._interval_ms is not None

    def start(self, interval_ms: int) -> None:
        """Fire immediately, then arm the periodic trigger. Restarting resets the schedule."""
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._interval_ms = interval_ms
        self._fire(self._clock.now_ms())

    def stop(self) -> None:
        """Cancel future ticks. Work already dispatched is not interrupted."""
        if self._interval_ms is None:
            return
        self._interval_ms = None
        self._next_deadline_ms = None
        self._state = SchedulerState.IDLE
        log.debug("Refresh scheduler stopped")

    def trigger_now(self) -> None:
        """Run an acquisition outside the periodic schedule. The deadline is untouched."""
        self._dispatch()

    def run_pending(self, now_ms: int | None = None) -> int:
        """Fire once if a tick is due at now_ms. Returns the number of ticks fired (0 or 1).

        Periods missed while nobody pumped the scheduler are not replayed: the
        overdue tick fires once and the next deadline lands on the following
        multiple of the interval, so the schedule keeps its phase.
        """
        if now_ms is None:
            now_ms = self._clock.now_ms()
        if (
            self._interval_ms is None
            or self._next_deadline_ms is None
            or now_ms < self._next_deadline_ms
        ):
            return 0
        missed = (now_ms - self._next_deadline_ms) // self._interval_ms
        if missed:
            log.debug("Skipping %d missed refresh periods", missed)
        self._fire(self._next_deadline_ms + missed * self._interval_ms)
        return 1

    def time_remaining(self, now_ms: int | None = None) -> timedelta:
        """Time until the next scheduled tick; zero or negative if overdue, zero when idle."""
        if now_ms is None:
            now_ms = self._clock.now_ms()
        if self._next_deadline_ms is None:
            return timedelta(0)
        return timedelta(milliseconds=self._next_deadline_ms - now_ms)

    def run_forever(self, poll_seconds: float = 1.0) -> None:
        """Blocking pump for headless use. Returns once stop() has been called."""
        while self.running:
            self.run_pending()
            self._clock.sleep(poll_seconds)

    def _fire(self, tick_ms: int) -> None:
        self._state = SchedulerState.FIRING
        # The deadline moves as soon as the acquisition is dispatched, so the
        # countdown reflects this tick regardless of how long the fetch takes.
        if self._interval_ms is not None:
            self._next_deadline_ms = tick_ms + self._interval_ms
        self._dispatch()
        if self._interval_ms is not None:
            self._state = SchedulerState.SCHEDULED

    def _dispatch(self) -> None:
        try:
            self._acquire()
        except Exception:
            log.exception("Refresh failed; keeping the schedule")
