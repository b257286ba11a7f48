import threading
import time
from datetime import timedelta

from school_attendance.attendance.model import AttendanceRecord
from school_attendance.attendance.tracker import LiveHoursTracker, RepeatingTimer
from school_attendance.core.enums import AttendanceStatus


def _checked_in(check_in, *, live=None):
    return AttendanceRecord(
        check_in_time=check_in,
        check_out_time=None,
        status=AttendanceStatus.PRESENT,
        live_working_hours=live,
    )


def _checked_out(check_in, check_out, *, working_hours):
    return AttendanceRecord(
        check_in_time=check_in,
        check_out_time=check_out,
        status=AttendanceStatus.PRESENT,
        working_hours=working_hours,
    )


def test_seeds_from_elapsed_time_and_recomputes_every_tick(clock, timers):
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_in(clock.now - timedelta(hours=2)))

    assert tracker.hours == 2.0
    assert tracker.is_running
    assert len(timers.live) == 1
    assert timers.timers[0].interval == 1.0

    clock.advance(minutes=36)
    timers.timers[0].fire()
    assert tracker.hours == 2.6


def test_seeds_from_server_hint_when_present(clock, timers):
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_in(clock.now - timedelta(hours=2), live=1.25))

    assert tracker.hours == 1.25


def test_repeated_polls_do_not_restart_timer(clock, timers):
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    record = _checked_in(clock.now - timedelta(hours=1))

    for _ in range(3):
        tracker.sync(record)

    assert len(timers.timers) == 1
    assert timers.timers[0].cancel_calls == 0


def test_check_out_freezes_at_server_working_hours(clock, timers):
    check_in = clock.now - timedelta(hours=3)
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_in(check_in))

    clock.advance(hours=5)
    tracker.sync(_checked_out(check_in, clock.now, working_hours=7.5))

    assert tracker.hours == 7.5
    assert tracker.is_frozen
    assert not tracker.is_running
    assert timers.timers[0].cancel_calls == 1

    # A tick racing with the cancel must not overwrite the frozen value.
    clock.advance(hours=1)
    timers.timers[0].fire()
    assert tracker.hours == 7.5


def test_frozen_value_never_changes_on_later_polls(clock, timers):
    check_in = clock.now - timedelta(hours=8)
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_out(check_in, clock.now, working_hours=8.0))

    tracker.sync(_checked_out(check_in, clock.now, working_hours=8.4))
    clock.advance(hours=2)
    tracker.sync(_checked_out(check_in, clock.now, working_hours=9.0))

    assert tracker.hours == 8.0
    assert timers.timers == []


def test_stale_checked_in_record_does_not_unfreeze(clock, timers):
    check_in = clock.now - timedelta(hours=8)
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_in(check_in))
    tracker.sync(_checked_out(check_in, clock.now, working_hours=7.5))

    # A response fetched before the check-out arrives after it.
    tracker.sync(_checked_in(check_in, live=7.4))

    assert tracker.is_frozen
    assert not tracker.is_running
    assert tracker.hours == 7.5
    assert len(timers.timers) == 1
    assert timers.live == []


def test_new_check_in_after_frozen_day_starts_again(clock, timers):
    yesterday = clock.now - timedelta(days=1)
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_out(yesterday, yesterday + timedelta(hours=8), working_hours=8.0))

    tracker.sync(_checked_in(clock.now - timedelta(hours=1)))

    assert not tracker.is_frozen
    assert tracker.is_running
    assert tracker.hours == 1.0


def test_check_out_without_working_hours_freezes_at_zero(clock, timers):
    check_in = clock.now - timedelta(hours=1)
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_in(check_in))
    tracker.sync(_checked_out(check_in, clock.now, working_hours=None))

    assert tracker.hours == 0.0


def test_close_cancels_exactly_once_and_ignores_late_ticks(clock, timers):
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_in(clock.now - timedelta(hours=1)))

    tracker.close()
    tracker.close()

    assert timers.timers[0].cancel_calls == 1
    assert timers.live == []
    hours = tracker.hours
    clock.advance(hours=1)
    timers.timers[0].fire()
    assert tracker.hours == hours


def test_check_in_then_check_out_then_close_cancels_once(clock, timers):
    check_in = clock.now - timedelta(hours=1)
    with LiveHoursTracker(clock=clock, timer_factory=timers) as tracker:
        tracker.sync(_checked_in(check_in))
        tracker.sync(_checked_out(check_in, clock.now, working_hours=1.0))

    assert len(timers.timers) == 1
    assert timers.timers[0].cancel_calls == 1


def test_pulse_runs_only_while_timer_is_active(clock, timers):
    check_in = clock.now - timedelta(hours=1)
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    assert not tracker.pulse.active

    tracker.sync(_checked_in(check_in))
    assert tracker.pulse.active
    assert tracker.pulse.scale == 1.0

    timers.timers[0].fire()
    assert tracker.pulse.scale == 1.2
    timers.timers[0].fire()
    assert tracker.pulse.scale == 1.0
    timers.timers[0].fire()

    tracker.sync(_checked_out(check_in, clock.now, working_hours=1.0))
    assert not tracker.pulse.active
    assert tracker.pulse.scale == 1.0


def test_record_without_check_in_resets(clock, timers):
    tracker = LiveHoursTracker(clock=clock, timer_factory=timers)
    tracker.sync(_checked_in(clock.now - timedelta(hours=1)))
    tracker.sync(None)

    assert tracker.hours == 0.0
    assert not tracker.is_running
    assert timers.timers[0].cancel_calls == 1


def test_repeating_timer_stops_after_cancel():
    calls = []
    fired = threading.Event()

    def callback():
        calls.append(1)
        fired.set()

    timer = RepeatingTimer(0.01, callback)
    timer.start()
    assert fired.wait(2)

    timer.cancel()
    time.sleep(0.05)
    count = len(calls)
    time.sleep(0.05)
    assert len(calls) == count
