from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional, Protocol

from ..common.datetime_utils import hours_between, now_utc
from ..core.constants import DEFAULT_TICK_SECONDS, PULSE_PEAK_SCALE, PULSE_REST_SCALE
from .model import AttendanceRecord

logger = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class RepeatingTimer:
    """Calls ``callback`` every ``interval`` seconds on a daemon thread until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self._interval = float(interval)
        self._callback = callback
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name="live-hours-timer", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            if self._cancelled.is_set():
                break
            self._callback()


class PulseIndicator:
    """Attention pulse shown next to the live timer."""

    def __init__(self):
        self.active = False
        self.scale = PULSE_REST_SCALE

    def start(self) -> None:
        self.active = True

    def step(self) -> None:
        if self.active:
            self.scale = PULSE_PEAK_SCALE if self.scale == PULSE_REST_SCALE else PULSE_REST_SCALE

    def reset(self) -> None:
        self.active = False
        self.scale = PULSE_REST_SCALE


class LiveHoursTracker:
    """Display value of "hours worked so far".

    While checked in and not checked out, a repeating timer recomputes
    ``(now - check_in) / 1h`` every tick. Once a check-out is observed the timer
    is cancelled and the value is frozen at the server's final working hours.
    The server stays the source of truth; this only interpolates between polls.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = now_utc,
        timer_factory: TimerFactory = RepeatingTimer,
        interval: float = DEFAULT_TICK_SECONDS,
        pulse: Optional[PulseIndicator] = None,
    ):
        self._clock = clock
        self._timer_factory = timer_factory
        self._interval = float(interval)
        self.pulse = pulse or PulseIndicator()
        self._lock = threading.RLock()
        self._timer: Optional[Timer] = None
        self._token: Optional[object] = None
        self._running_since: Optional[datetime] = None
        self._frozen_for: Optional[datetime] = None
        self._hours = 0.0

    @property
    def hours(self) -> float:
        with self._lock:
            return self._hours

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def is_frozen(self) -> bool:
        with self._lock:
            return self._frozen_for is not None

    def sync(self, record: Optional[AttendanceRecord]) -> None:
        """Apply the latest server record."""

        with self._lock:
            if record is None or record.check_in_time is None:
                self._stop()
                self._frozen_for = None
                self._hours = 0.0
                return

            if record.check_out_time is not None:
                if self._frozen_for == record.check_in_time:
                    return
                self._stop()
                self._frozen_for = record.check_in_time
                self._hours = float(record.working_hours or 0.0)
                logger.debug("live hours frozen", extra={"hours": self._hours})
                return

            if self._frozen_for == record.check_in_time:
                # Late response from before the check-out; the day stays frozen.
                return
            self._frozen_for = None
            if self._timer is not None and self._running_since == record.check_in_time:
                return
            self._stop()
            self._start(record)

    def _start(self, record: AttendanceRecord) -> None:
        self._running_since = record.check_in_time
        if record.live_working_hours is not None:
            self._hours = float(record.live_working_hours)
        else:
            self._hours = self._elapsed()
        token = object()
        self._token = token
        self._timer = self._timer_factory(self._interval, lambda: self._tick(token))
        self.pulse.start()
        self._timer.start()

    def _stop(self) -> None:
        timer, self._timer = self._timer, None
        self._token = None
        self._running_since = None
        if timer is not None:
            timer.cancel()
        self.pulse.reset()

    def _elapsed(self) -> float:
        return round(hours_between(self._running_since, self._clock()), 2)

    def _tick(self, token: object) -> None:
        with self._lock:
            if token is not self._token or self._running_since is None:
                return
            self._hours = self._elapsed()
            self.pulse.step()

    def close(self) -> None:
        """Tear down on unmount; the timer never fires after this."""

        with self._lock:
            self._stop()

    def __enter__(self) -> "LiveHoursTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
