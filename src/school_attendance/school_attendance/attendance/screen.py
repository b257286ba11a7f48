from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import format_time_remaining, now_utc
from ..core.constants import (
    DEFAULT_FETCH_RETRIES,
    DEFAULT_LOCATION_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TICK_SECONDS,
)
from ..core.enums import Action, AppState, AttendanceStatus, DayType
from ..core.exceptions import (
    ActionBusyError,
    ActionUnavailableError,
    DomainError,
    MissingIdentityError,
    ServerRejectedError,
    SessionExpiredError,
    ValidationError,
)
from ..requests.forms import LeaveRequestForm, RegularizationForm
from ..requests.repository import RequestRepository
from ..requests.service import RequestService
from ..session.model import CurrentUser
from ..session.service import SessionService
from .device import DeviceContextResolver, LocationProvider
from .dispatcher import ActionDispatcher
from .fetcher import SessionDataFetcher
from .model import AttendanceSnapshot, AttendanceWindow
from .query_cache import QueryCache
from .repository import AttendanceRepository
from .tracker import LiveHoursTracker, RepeatingTimer, TimerFactory

logger = logging.getLogger(__name__)

MISSING_IDENTITY_MESSAGE = "Unable to load your profile. Please sign in again."

_FAILURE_TITLES = {
    Action.CHECK_IN: ("Cannot Check In", "Check-In Failed"),
    Action.CHECK_OUT: ("Cannot Check Out", "Check-Out Failed"),
    Action.LEAVE_REQUEST: ("Failed", "Failed"),
    Action.REGULARIZATION: ("Failed", "Failed"),
}

_FALLBACK_MESSAGES = {
    Action.LEAVE_REQUEST: "Failed to submit leave request",
    Action.REGULARIZATION: "Failed to submit regularization",
}

_STATUS_LABELS = {
    AttendanceStatus.PRESENT: ("Checked In", "success"),
    AttendanceStatus.LATE: ("Late Check-In", "warning"),
    AttendanceStatus.ABSENT: ("Absent", "danger"),
    AttendanceStatus.ON_LEAVE: ("On Leave", "info"),
    AttendanceStatus.HALF_DAY: ("Half Day", "info"),
}


@dataclass(frozen=True)
class Alert:
    title: str
    message: str
    level: str = "info"

    def to_view(self) -> dict:
        return {"title": self.title, "message": self.message, "level": self.level}


@dataclass(frozen=True)
class ScreenResult:
    """Outcome of a screen action. ``kind`` names the failure class, if any."""

    success: bool
    alert: Optional[Alert] = None
    kind: Optional[str] = None


@dataclass(frozen=True)
class ScreenSettings:
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    retries: int = DEFAULT_FETCH_RETRIES
    tick_seconds: float = DEFAULT_TICK_SECONDS
    location_timeout: float = DEFAULT_LOCATION_TIMEOUT_SECONDS
    app_version: str = "1.0.0"


def window_label(window: AttendanceWindow, now: datetime) -> str:
    if window.is_open:
        return f"Open • {format_time_remaining(window.end, now)}"
    if window.start is not None and now < window.start:
        return "Opens soon"
    return "Closed"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class AttendanceScreen:
    """Self attendance screen controller.

    Owns the lifetime of the fetcher, the live-hours tracker and the device
    context between ``mount()`` and ``unmount()``. Every error ends here as an
    ``Alert``; nothing propagates to the caller.
    """

    def __init__(
        self,
        *,
        session: SessionService,
        attendance: AttendanceRepository,
        requests: RequestRepository,
        request_service: RequestService,
        locations: LocationProvider,
        settings: ScreenSettings = ScreenSettings(),
        cache: Optional[QueryCache] = None,
        clock: Callable[[], datetime] = now_utc,
        timer_factory: TimerFactory = RepeatingTimer,
    ):
        self._session = session
        self._attendance = attendance
        self._requests = requests
        self._request_service = request_service
        self._locations = locations
        self._settings = settings
        self._cache = cache or QueryCache()
        self._clock = clock
        self._timer_factory = timer_factory
        self._alerts: list[Alert] = []
        self._alerts_lock = threading.Lock()
        self._lifecycle_lock = threading.RLock()

        self.user: Optional[CurrentUser] = None
        self.mounted = False
        self.fetcher: Optional[SessionDataFetcher] = None
        self.tracker: Optional[LiveHoursTracker] = None
        self.device: Optional[DeviceContextResolver] = None
        self.dispatcher: Optional[ActionDispatcher] = None
        self.leave_form = LeaveRequestForm()
        self.regularization_form = RegularizationForm()

    # Lifecycle

    def mount(self, *, background: bool = True) -> None:
        """Read the session snapshot once and start fetching.

        With ``background=False`` the device context resolves synchronously and
        no poller thread is started.
        """

        with self._lifecycle_lock:
            if self.mounted:
                return
            self._mount(background)

    def _mount(self, background: bool) -> None:
        self.user = self._session.load_current_user()
        self.fetcher = SessionDataFetcher(
            self._attendance,
            self._cache,
            user=self.user,
            requests=self._requests,
            poll_interval=self._settings.poll_interval,
            retries=self._settings.retries,
        )
        self.tracker = LiveHoursTracker(
            clock=self._clock,
            timer_factory=self._timer_factory,
            interval=self._settings.tick_seconds,
        )
        self.device = DeviceContextResolver(
            self._locations,
            app_version=self._settings.app_version,
            timeout=self._settings.location_timeout,
        )
        self.dispatcher = ActionDispatcher(
            self._attendance,
            self._request_service,
            self._cache,
            self.device,
            user=self.user,
            attendance_key=self.fetcher.key,
            leave_key=self.fetcher.leave_key,
            snapshot=lambda: self.fetcher.snapshot,
            on_leave=self.is_on_leave,
        )
        self.mounted = True

        if not self.fetcher.enabled:
            logger.warning("no user or school id in session, attendance screen blocked")
            return

        self.fetcher.subscribe(self._on_snapshot)
        if background:
            self.device.resolve_async()
        else:
            self.device.resolve()
        self.fetcher.start(poll=background)
        self.fetcher.refresh()
        self.fetcher.refresh_leaves()

    def unmount(self) -> None:
        with self._lifecycle_lock:
            if not self.mounted:
                return
            self.fetcher.stop()
            self.tracker.close()
            self.leave_form.close()
            self.regularization_form.close()
            self.mounted = False

    def __enter__(self) -> "AttendanceScreen":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    def _on_snapshot(self, snapshot: Optional[AttendanceSnapshot]) -> None:
        if snapshot is not None and self.tracker is not None:
            self.tracker.sync(snapshot.attendance)

    # Derived state

    @property
    def snapshot(self) -> Optional[AttendanceSnapshot]:
        return self.fetcher.snapshot if self.fetcher else None

    def is_on_leave(self) -> bool:
        if self.fetcher is None:
            return False
        snapshot = self.fetcher.snapshot
        if snapshot and snapshot.attendance and snapshot.attendance.status == AttendanceStatus.ON_LEAVE:
            return True
        return self.fetcher.leave_today(self._clock().date()) is not None

    def phase(self) -> str:
        """Where the day is in NOT_MARKED -> CHECKED_IN -> CHECKED_OUT (or ON_LEAVE)."""
        snapshot = self.snapshot
        record = snapshot.attendance if snapshot else None
        if self.is_on_leave():
            return "ON_LEAVE"
        if record is None or record.check_in_time is None:
            return "NOT_MARKED"
        if record.check_out_time is None:
            return "CHECKED_IN"
        return "CHECKED_OUT"

    # Alerts

    def _alert(self, title: str, message: str, level: str) -> Alert:
        alert = Alert(title=title, message=message, level=level)
        with self._alerts_lock:
            self._alerts.append(alert)
        return alert

    def pop_alerts(self) -> list[Alert]:
        with self._alerts_lock:
            alerts, self._alerts = self._alerts, []
        return alerts

    def _require_mounted(self) -> Optional[ScreenResult]:
        if not self.mounted or self.dispatcher is None:
            self.mount()
        if self.user is None or not self.user.has_identity:
            alert = self._alert("Error", MISSING_IDENTITY_MESSAGE, "danger")
            return ScreenResult(success=False, alert=alert, kind="blocked")
        return None

    def _fail(self, action: Action, e: DomainError) -> ScreenResult:
        rejected_title, failed_title = _FAILURE_TITLES[action]
        if isinstance(e, ValidationError):
            return ScreenResult(False, self._alert("Validation Error", str(e), "warning"), "validation")
        if isinstance(e, ActionUnavailableError):
            return ScreenResult(False, self._alert(rejected_title, str(e), "warning"), "unavailable")
        if isinstance(e, ActionBusyError):
            return ScreenResult(False, self._alert("Please wait", str(e), "info"), "busy")
        if isinstance(e, SessionExpiredError):
            return ScreenResult(False, self._alert("Session Expired", str(e), "danger"), "session")
        if isinstance(e, MissingIdentityError):
            return ScreenResult(False, self._alert("Error", str(e), "danger"), "blocked")
        if isinstance(e, ServerRejectedError) and action in (Action.CHECK_IN, Action.CHECK_OUT):
            return ScreenResult(False, self._alert(rejected_title, str(e), "warning"), "rejected")
        message = str(e) or _FALLBACK_MESSAGES.get(action, "Something went wrong")
        return ScreenResult(False, self._alert(failed_title, message, "danger"), "failed")

    # Actions

    def refresh(self) -> ScreenResult:
        blocked = self._require_mounted()
        if blocked:
            return blocked
        self.fetcher.refresh_leaves()
        if self.fetcher.refresh() is None:
            error = self.fetcher.state.error
            message = str(error) if error else "Failed to load attendance"
            return ScreenResult(False, self._alert("Error", message, "danger"), "failed")
        return ScreenResult(True)

    def handle_app_state(self, next_state: AppState | str) -> ScreenResult:
        blocked = self._require_mounted()
        if blocked:
            return blocked
        try:
            self.fetcher.handle_app_state(next_state)
        except ValueError:
            return ScreenResult(False, self._alert("Error", f"Unknown app state: {next_state}", "warning"), "validation")
        return ScreenResult(True)

    def retry_location(self) -> ScreenResult:
        blocked = self._require_mounted()
        if blocked:
            return blocked
        if self.device.resolve() is None:
            return ScreenResult(False, self._alert("Location Error", self.device.error or "", "warning"), "failed")
        return ScreenResult(True)

    def check_in(self) -> ScreenResult:
        blocked = self._require_mounted()
        if blocked:
            return blocked
        try:
            outcome = self.dispatcher.check_in()
        except DomainError as e:
            return self._fail(Action.CHECK_IN, e)
        title = "Checked In (Late)" if outcome.is_late else "Checked In"
        return ScreenResult(True, self._alert(title, outcome.message, "warning" if outcome.is_late else "success"))

    def check_out(self) -> ScreenResult:
        blocked = self._require_mounted()
        if blocked:
            return blocked
        try:
            outcome = self.dispatcher.check_out()
        except DomainError as e:
            return self._fail(Action.CHECK_OUT, e)
        message = outcome.message
        if not message and outcome.working_hours is not None:
            message = f"Working hours: {outcome.working_hours:.2f} hours"
        return ScreenResult(True, self._alert("Checked Out", message, "success"))

    def _update_form(self, form, values: dict) -> ScreenResult:
        try:
            form.update(**values)
        except ValidationError as e:
            form.errors.update(e.errors)
            return ScreenResult(False, self._alert("Validation Error", str(e), "warning"), "validation")
        return ScreenResult(True)

    def open_leave_form(self) -> None:
        self.leave_form.open()

    def close_leave_form(self) -> None:
        self.leave_form.close()

    def update_leave_form(self, **values) -> ScreenResult:
        return self._update_form(self.leave_form, values)

    def open_regularization_form(self) -> None:
        self.regularization_form.open()

    def close_regularization_form(self) -> None:
        self.regularization_form.close()

    def update_regularization_form(self, **values) -> ScreenResult:
        return self._update_form(self.regularization_form, values)

    def submit_leave(self) -> ScreenResult:
        blocked = self._require_mounted()
        if blocked:
            return blocked
        draft = self.leave_form.draft or self.leave_form.open()
        try:
            self.dispatcher.submit_leave(draft)
        except DomainError as e:
            if isinstance(e, ValidationError):
                self.leave_form.errors = dict(e.errors)
            return self._fail(Action.LEAVE_REQUEST, e)
        self.leave_form.close()
        return ScreenResult(True, self._alert("Success", "Leave request submitted successfully", "success"))

    def submit_regularization(self) -> ScreenResult:
        blocked = self._require_mounted()
        if blocked:
            return blocked
        draft = self.regularization_form.draft or self.regularization_form.open()
        try:
            self.dispatcher.submit_regularization(draft)
        except DomainError as e:
            if isinstance(e, ValidationError):
                self.regularization_form.errors = dict(e.errors)
            return self._fail(Action.REGULARIZATION, e)
        self.regularization_form.close()
        return ScreenResult(True, self._alert("Success", "Regularization request submitted successfully", "success"))

    # View model

    def view(self) -> dict:
        if self.fetcher is None or not self.fetcher.enabled:
            return {"blocked": True, "message": MISSING_IDENTITY_MESSAGE}

        state = self.fetcher.state
        snapshot = state.snapshot
        now = self._clock()
        view: dict = {
            "blocked": False,
            "loading": state.is_loading,
            "error": str(state.error) if state.error else None,
            "phase": self.phase(),
            "live_hours": self.tracker.hours,
            "timer_running": self.tracker.is_running,
            "pulse": {"active": self.tracker.pulse.active, "scale": self.tracker.pulse.scale},
            "device": {"state": self.device.state.value, "error": self.device.error},
            "actions": self._actions_view(),
            "leave_form": self.leave_form.to_view(),
            "regularization_form": self.regularization_form.to_view(),
        }
        leave = self.fetcher.leave_today(now.date())
        view["leave_today"] = (
            {
                "leave_type": leave.leave_type,
                "start_date": leave.start_date.isoformat(),
                "end_date": leave.end_date.isoformat(),
            }
            if leave
            else None
        )
        if snapshot is None:
            return view

        view["working_day"] = {
            "is_working_day": snapshot.is_working_day,
            "notice": None if snapshot.is_working_day else self._day_notice(snapshot),
        }
        view["attendance"] = self._attendance_view(snapshot)
        view["windows"] = {
            "check_in": self._window_view(snapshot.windows.check_in, now),
            "check_out": self._window_view(snapshot.windows.check_out, now),
        }
        view["config"] = (
            {"start_time": snapshot.config.start_time, "end_time": snapshot.config.end_time}
            if snapshot.config
            else None
        )
        stats = snapshot.monthly_stats
        view["monthly_attendance_percentage"] = (
            round(stats.attendance_percentage) if stats and stats.attendance_percentage is not None else None
        )
        return view

    def _actions_view(self) -> dict:
        check_in = self.dispatcher.check_in_availability()
        check_out = self.dispatcher.check_out_availability()
        return {
            "check_in": {
                "available": check_in.allowed,
                "reasons": check_in.reasons,
                "busy": self.dispatcher.is_busy(Action.CHECK_IN),
            },
            "check_out": {
                "available": check_out.allowed,
                "reasons": check_out.reasons,
                "busy": self.dispatcher.is_busy(Action.CHECK_OUT),
            },
            "leave_request": {"busy": self.dispatcher.is_busy(Action.LEAVE_REQUEST)},
            "regularization": {"busy": self.dispatcher.is_busy(Action.REGULARIZATION)},
        }

    @staticmethod
    def _day_notice(snapshot: AttendanceSnapshot) -> str:
        if snapshot.day_type == DayType.HOLIDAY:
            return f"Holiday: {snapshot.holiday_name}" if snapshot.holiday_name else "Holiday"
        if snapshot.day_type == DayType.WEEKEND:
            return "Weekend"
        if isinstance(snapshot.day_type, str) and snapshot.day_type:
            return snapshot.day_type
        return "Non-Working Day"

    @staticmethod
    def _attendance_view(snapshot: AttendanceSnapshot) -> Optional[dict]:
        record = snapshot.attendance
        if record is None:
            return None
        label, tone = _STATUS_LABELS.get(record.status, ("Not Marked", "secondary"))
        return {
            "status": record.status.value if record.status else None,
            "label": label,
            "tone": tone,
            "check_in_time": _iso(record.check_in_time),
            "check_out_time": _iso(record.check_out_time),
            "late_by_minutes": record.late_by_minutes if record.late_by_minutes > 0 else None,
            "working_hours": record.working_hours,
        }

    @staticmethod
    def _window_view(window: Optional[AttendanceWindow], now: datetime) -> Optional[dict]:
        if window is None:
            return None
        return {
            "start": _iso(window.start),
            "end": _iso(window.end),
            "is_open": window.is_open,
            "label": window_label(window, now),
            "min_time": _iso(window.min_time),
        }
