# tests/test_scheduler.py
from __future__ import annotations

from datetime import timedelta

import pytest

from moonwatch.models import SchedulerState
from moonwatch.scheduler import RefreshScheduler

INTERVAL = 300_000


class Recorder:
    def __init__(self, clock) -> None:
        self.clock = clock
        self.calls: list[int] = []

    def __call__(self) -> None:
        self.calls.append(self.clock.now_ms())


def test_starts_idle(clock) -> None:
    scheduler = RefreshScheduler(Recorder(clock), clock)
    assert scheduler.state is SchedulerState.IDLE
    assert scheduler.next_deadline_ms is None
    assert scheduler.time_remaining(clock.now_ms()) == timedelta(0)
    assert scheduler.run_pending() == 0


def test_start_fires_immediately_and_schedules(clock) -> None:
    acquire = Recorder(clock)
    scheduler = RefreshScheduler(acquire, clock)
    start = clock.now_ms()

    scheduler.start(INTERVAL)

    assert acquire.calls == [start]
    assert scheduler.state is SchedulerState.SCHEDULED
    assert scheduler.next_deadline_ms == start + INTERVAL


def test_ticks_once_per_interval(clock) -> None:
    acquire = Recorder(clock)
    scheduler = RefreshScheduler(acquire, clock)
    scheduler.start(INTERVAL)

    clock.advance(INTERVAL - 1)
    assert scheduler.run_pending() == 0
    clock.advance(1)
    assert scheduler.run_pending() == 1
    assert len(acquire.calls) == 2


def test_fixed_period_is_not_shifted_by_late_polling(clock) -> None:
    scheduler = RefreshScheduler(Recorder(clock), clock)
    start = clock.now_ms()
    scheduler.start(INTERVAL)

    clock.advance(INTERVAL + 40_000)
    scheduler.run_pending()
    assert scheduler.next_deadline_ms == start + 2 * INTERVAL


def test_missed_periods_fire_once_and_keep_phase(clock) -> None:
    acquire = Recorder(clock)
    scheduler = RefreshScheduler(acquire, clock)
    start = clock.now_ms()
    scheduler.start(INTERVAL)

    clock.advance(3 * INTERVAL + 10_000)
    assert scheduler.run_pending() == 1
    assert len(acquire.calls) == 2
    assert scheduler.next_deadline_ms == start + 4 * INTERVAL
    assert scheduler.run_pending() == 0


def test_deadline_moves_before_acquisition_runs(clock) -> None:
    seen: list[int | None] = []
    scheduler: RefreshScheduler

    def acquire() -> None:
        seen.append(scheduler.next_deadline_ms)
        assert scheduler.state is SchedulerState.FIRING

    scheduler = RefreshScheduler(acquire, clock)
    start = clock.now_ms()
    scheduler.start(INTERVAL)
    assert seen == [start + INTERVAL]


def test_time_remaining_counts_down_and_goes_negative(clock) -> None:
    scheduler = RefreshScheduler(Recorder(clock), clock)
    start = clock.now_ms()
    scheduler.start(INTERVAL)

    assert scheduler.time_remaining(start + 60_000) == timedelta(minutes=4)
    assert scheduler.time_remaining(start + INTERVAL) == timedelta(0)
    assert scheduler.time_remaining(start + INTERVAL + 5_000) == timedelta(seconds=-5)


def test_stop_is_idempotent_and_halts_ticks(clock) -> None:
    acquire = Recorder(clock)
    scheduler = RefreshScheduler(acquire, clock)
    scheduler.start(INTERVAL)

    scheduler.stop()
    scheduler.stop()
    clock.advance(10 * INTERVAL)

    assert scheduler.run_pending() == 0
    assert scheduler.state is SchedulerState.IDLE
    assert len(acquire.calls) == 1


def test_trigger_now_leaves_deadline_alone(clock) -> None:
    acquire = Recorder(clock)
    scheduler = RefreshScheduler(acquire, clock)
    scheduler.start(INTERVAL)
    deadline = scheduler.next_deadline_ms

    clock.advance(10_000)
    scheduler.trigger_now()

    assert len(acquire.calls) == 2
    assert scheduler.next_deadline_ms == deadline


def test_failing_acquisition_keeps_schedule(clock) -> None:
    calls = []

    def acquire() -> None:
        calls.append(1)
        raise RuntimeError("boom")

    scheduler = RefreshScheduler(acquire, clock)
    scheduler.start(INTERVAL)
    clock.advance(INTERVAL)
    assert scheduler.run_pending() == 1
    assert len(calls) == 2
    assert scheduler.state is SchedulerState.SCHEDULED


def test_run_forever_returns_after_stop(clock) -> None:
    calls: list[int] = []

    def acquire() -> None:
        calls.append(clock.now_ms())
        if len(calls) == 3:
            scheduler.stop()

    scheduler = RefreshScheduler(acquire, clock)
    scheduler.start(1000)
    scheduler.run_forever(poll_seconds=1.0)

    assert len(calls) == 3
    assert clock.slept


def test_rejects_non_positive_interval(clock) -> None:
    with pytest.raises(ValueError):
        RefreshScheduler(Recorder(clock), clock).start(0)
