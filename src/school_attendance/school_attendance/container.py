from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests

from .api.client import ApiClient, ApiConfig
from .attendance.device import StaticLocationProvider
from .attendance.http_attendance_repository import HttpAttendanceRepository
from .attendance.query_cache import QueryCache
from .attendance.screen import AttendanceScreen, ScreenSettings
from .requests.http_request_repository import HttpRequestRepository
from .requests.service import RequestService
from .session.service import SessionService
from .session.store import JsonFileSessionStore


@dataclass(frozen=True)
class Container:
    session_store: JsonFileSessionStore
    session_service: SessionService
    api: ApiClient

    attendance_repo: HttpAttendanceRepository
    requests_repo: HttpRequestRepository

    request_service: RequestService
    screen: AttendanceScreen


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def build_container(
    *,
    settings: Any,
    http: Optional[requests.Session] = None,
    on_signed_out: Optional[Callable[[], None]] = None,
) -> Container:
    session_store = JsonFileSessionStore(getattr(settings, "SESSION_FILE"))
    session_service = SessionService(session_store, on_signed_out=on_signed_out)
    api = ApiClient(
        ApiConfig(
            base_url=str(getattr(settings, "API_BASE_URL")),
            timeout=float(getattr(settings, "API_TIMEOUT_SECONDS", 15)),
        ),
        session_service,
        http=http,
    )

    attendance_repo = HttpAttendanceRepository(api)
    requests_repo = HttpRequestRepository(api)
    request_service = RequestService(requests_repo)

    locations = StaticLocationProvider(
        _optional_float(getattr(settings, "DEVICE_LATITUDE", None)),
        _optional_float(getattr(settings, "DEVICE_LONGITUDE", None)),
        _optional_float(getattr(settings, "DEVICE_ACCURACY", None)),
    )
    screen = AttendanceScreen(
        session=session_service,
        attendance=attendance_repo,
        requests=requests_repo,
        request_service=request_service,
        locations=locations,
        settings=ScreenSettings(
            poll_interval=float(getattr(settings, "POLL_INTERVAL_SECONDS", 30)),
            retries=int(getattr(settings, "FETCH_RETRIES", 2)),
            tick_seconds=float(getattr(settings, "TICK_SECONDS", 1)),
            location_timeout=float(getattr(settings, "LOCATION_TIMEOUT_SECONDS", 15)),
            app_version=str(getattr(settings, "APP_VERSION", "1.0.0")),
        ),
        cache=QueryCache(),
    )

    return Container(
        session_store=session_store,
        session_service=session_service,
        api=api,
        attendance_repo=attendance_repo,
        requests_repo=requests_repo,
        request_service=request_service,
        screen=screen,
    )
