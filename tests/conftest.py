from __future__ import annotations

import json
import threading
from datetime import date, datetime, timedelta, timezone

import pytest
import requests

from school_attendance.attendance.device import StaticLocationProvider
from school_attendance.attendance.model import AttendanceSnapshot, MarkResult
from school_attendance.attendance.query_cache import QueryCache
from school_attendance.attendance.screen import AttendanceScreen, ScreenSettings
from school_attendance.requests.model import LeaveRequest
from school_attendance.requests.service import RequestService
from school_attendance.session.service import SessionService

NOW = datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc)
USER = {"id": "u-1", "schoolId": "s-1", "name": "Lan", "role": {"name": "TEACHER"}}


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class ManualTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancel_calls = 0

    def start(self):
        self.started = True

    def cancel(self):
        self.cancel_calls += 1

    @property
    def cancelled(self):
        return self.cancel_calls > 0

    def fire(self):
        # Fires even when cancelled, like a tick racing with cancel().
        self.callback()


class ManualTimerFactory:
    def __init__(self):
        self.timers: list[ManualTimer] = []

    def __call__(self, interval, callback):
        timer = ManualTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


class MemoryStore:
    def __init__(self, items=None):
        self.items = dict(items or {})

    def get_item(self, key):
        return self.items.get(key)

    def set_item(self, key, value):
        self.items[key] = value

    def delete_item(self, key):
        self.items.pop(key, None)


class FakeAttendanceRepo:
    """In-memory backend for ``/attendance/mark``."""

    def __init__(self, snapshot: dict | None = None):
        self.snapshot = snapshot
        self.get_calls = 0
        self.fail_next: list[Exception] = []
        self.commands = []
        self.mark_result = MarkResult(success=True, message="ok")
        self.mark_error: Exception | None = None
        self.on_mark = None
        self.mark_gate: threading.Event | None = None
        self.mark_entered = threading.Event()

    def get_today(self, *, school_id, user_id):
        self.get_calls += 1
        if self.fail_next:
            raise self.fail_next.pop(0)
        return AttendanceSnapshot.from_api(self.snapshot or {})

    def mark(self, *, school_id, command):
        self.commands.append(command)
        self.mark_entered.set()
        if self.mark_gate is not None:
            self.mark_gate.wait(5)
        if self.mark_error is not None:
            raise self.mark_error
        if self.on_mark is not None and self.mark_result.success:
            self.on_mark(command)
        return self.mark_result


class FakeRequestsRepo:
    def __init__(self):
        self.leaves: list[LeaveRequest] = []
        self.submitted_leaves = []
        self.submitted_regularizations = []
        self.list_calls = 0
        self.error: Exception | None = None

    def submit_leave(self, *, school_id, request):
        if self.error is not None:
            raise self.error
        self.submitted_leaves.append((school_id, request))

    def list_leave_requests(self, *, school_id, user_id):
        self.list_calls += 1
        return list(self.leaves)

    def submit_regularization(self, *, school_id, request):
        if self.error is not None:
            raise self.error
        self.submitted_regularizations.append((school_id, request))


def iso(value: datetime | None) -> str | None:
    return value.isoformat().replace("+00:00", "Z") if value else None


def build_snapshot(
    *,
    check_in: datetime | None = None,
    check_out: datetime | None = None,
    status: str | None = None,
    late_by: int = 0,
    working_hours: float | None = None,
    live_working_hours: float | None = None,
    is_working_day: bool = True,
    day_type: str = "WORKING_DAY",
    holiday_name: str | None = None,
    check_in_open: bool = True,
    check_out_open: bool = False,
    now: datetime = NOW,
) -> dict:
    attendance = None
    if check_in or status:
        attendance = {
            "checkInTime": iso(check_in),
            "checkOutTime": iso(check_out),
            "status": status,
            "lateByMinutes": late_by,
            "workingHours": working_hours,
            "liveWorkingHours": live_working_hours,
        }
    return {
        "attendance": attendance,
        "isWorkingDay": is_working_day,
        "dayType": day_type,
        "holidayName": holiday_name,
        "config": {"startTime": "08:00", "endTime": "16:00"},
        "windows": {
            "checkIn": {
                "start": iso(now - timedelta(hours=1)),
                "end": iso(now + timedelta(hours=1, minutes=5)),
                "isOpen": check_in_open,
            },
            "checkOut": {
                "start": iso(now + timedelta(hours=6)),
                "end": iso(now + timedelta(hours=9)),
                "isOpen": check_out_open,
                "minTime": iso(now + timedelta(hours=4)),
            },
        },
        "monthlyStats": {"attendancePercentage": 92.4},
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return ManualTimerFactory()


@pytest.fixture
def make_snapshot():
    return build_snapshot


@pytest.fixture
def attendance_repo(make_snapshot):
    return FakeAttendanceRepo(make_snapshot())


@pytest.fixture
def requests_repo():
    return FakeRequestsRepo()


@pytest.fixture
def cache(clock):
    return QueryCache(sleep=lambda _seconds: None, clock=clock)


@pytest.fixture
def session_store():
    return MemoryStore({"token": "tok-123", "user": json.dumps(USER)})


@pytest.fixture
def make_screen(session_store, attendance_repo, requests_repo, cache, clock, timers):
    screens = []

    def _make(*, location=(10.77, 106.70), today: date | None = None, mount=True):
        request_service = RequestService(requests_repo, today=lambda: today or clock().date())
        screen = AttendanceScreen(
            session=SessionService(session_store),
            attendance=attendance_repo,
            requests=requests_repo,
            request_service=request_service,
            locations=StaticLocationProvider(location[0], location[1], 5.0) if location else StaticLocationProvider(None, None),
            settings=ScreenSettings(poll_interval=30, retries=2, tick_seconds=1),
            cache=cache,
            clock=clock,
            timer_factory=timers,
        )
        if mount:
            screen.mount(background=False)
        screens.append(screen)
        return screen

    yield _make
    for screen in screens:
        screen.unmount()


def make_response(status: int, body=None):
    response = requests.Response()
    response.status_code = status
    response.encoding = "utf-8"
    if body is None:
        response._content = b""
    elif isinstance(body, (dict, list)):
        response._content = json.dumps(body).encode("utf-8")
    else:
        response._content = str(body).encode("utf-8")
    return response


class FakeHttp:
    """Stands in for ``requests.Session``; routes are keyed by (method, path)."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")
        self.routes: dict = {}
        self.calls: list[dict] = []
        self.error: Exception | None = None

    def route(self, method: str, path: str, handler) -> None:
        self.routes[(method, path)] = handler

    def request(self, method, url, *, params=None, json=None, headers=None, timeout=None):
        path = url[len(self.base_url):]
        self.calls.append(
            {"method": method, "url": url, "path": path, "params": params, "json": json, "headers": headers}
        )
        if self.error is not None:
            raise self.error
        handler = self.routes.get((method, path))
        if handler is None:
            return make_response(404, {"error": "Not found"})
        status, body = handler(params, json) if callable(handler) else handler
        return make_response(status, body)


@pytest.fixture
def fake_http():
    return FakeHttp("http://backend.test/api")
