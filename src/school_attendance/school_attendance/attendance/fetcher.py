from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from ..core.constants import (
    ATTENDANCE_QUERY,
    DEFAULT_FETCH_RETRIES,
    DEFAULT_POLL_INTERVAL_SECONDS,
    LEAVE_REQUESTS_QUERY,
)
from ..core.enums import AppState, RequestStatus
from ..core.exceptions import ApiError, DomainError, TransportError
from ..requests.model import LeaveRequest
from ..requests.repository import RequestRepository
from ..session.model import CurrentUser
from .model import AttendanceSnapshot
from .query_cache import QueryCache, QueryKey
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Optional[AttendanceSnapshot]], None]

_BACKGROUND_STATES = {AppState.INACTIVE, AppState.BACKGROUND}


@dataclass(frozen=True)
class FetchState:
    snapshot: Optional[AttendanceSnapshot]
    error: Optional[BaseException]
    is_loading: bool
    is_blocked: bool


def attendance_query_key(user: Optional[CurrentUser]) -> QueryKey:
    return (ATTENDANCE_QUERY, user.id if user else None, user.school_id if user else None)


def leave_query_key(user: Optional[CurrentUser]) -> QueryKey:
    return (LEAVE_REQUESTS_QUERY, user.id if user else None, user.school_id if user else None)


def approved_leave_for(leaves: Sequence[LeaveRequest], today: date) -> Optional[LeaveRequest]:
    for leave in leaves:
        if leave.status == RequestStatus.APPROVED and leave.start_date <= today <= leave.end_date:
            return leave
    return None


class SessionDataFetcher:
    """Loads today's attendance snapshot and keeps it fresh.

    Two triggers feed ``refresh()``: a 30 second poller and the foreground
    resume hook. Both go through the query cache, so overlapping triggers
    collapse into a single request.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        cache: QueryCache,
        *,
        user: Optional[CurrentUser],
        requests: Optional[RequestRepository] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        retries: int = DEFAULT_FETCH_RETRIES,
    ):
        self._attendance = attendance
        self._requests = requests
        self._cache = cache
        self._user = user
        self._poll_interval = float(poll_interval)
        self._retries = int(retries)
        self._listeners: list[SnapshotListener] = []
        self._app_state = AppState.ACTIVE
        self._stop = threading.Event()
        self._poller: Optional[threading.Thread] = None
        self._unsubscribe: list[Callable[[], None]] = []

    @property
    def key(self) -> QueryKey:
        return attendance_query_key(self._user)

    @property
    def leave_key(self) -> QueryKey:
        return leave_query_key(self._user)

    @property
    def enabled(self) -> bool:
        return self._user is not None and self._user.has_identity

    @property
    def state(self) -> FetchState:
        if not self.enabled:
            return FetchState(snapshot=None, error=None, is_loading=False, is_blocked=True)
        query = self._cache.get(self.key)
        return FetchState(
            snapshot=query.data,
            error=query.error,
            is_loading=query.data is None and query.error is None,
            is_blocked=False,
        )

    @property
    def snapshot(self) -> Optional[AttendanceSnapshot]:
        return self._cache.get_data(self.key) if self.enabled else None

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def refresh(self) -> Optional[AttendanceSnapshot]:
        """Fetch the snapshot now. Returns ``None`` without any request when disabled.

        Errors are kept in ``state.error``; the last good snapshot stays available.
        """

        if not self.enabled:
            return None
        user = self._user
        try:
            self._cache.fetch(
                self.key,
                lambda: self._attendance.get_today(school_id=user.school_id, user_id=user.id),
                retries=self._retries,
                retry_on=(TransportError, ApiError),
            )
        except DomainError as e:
            logger.warning("attendance refresh failed", extra={"error": str(e)})
            return None
        return self._notify()

    def refresh_leaves(self) -> Sequence[LeaveRequest]:
        if not self.enabled or self._requests is None:
            return []
        user = self._user
        try:
            return self._cache.fetch(
                self.leave_key,
                lambda: self._requests.list_leave_requests(school_id=user.school_id, user_id=user.id),
            )
        except DomainError as e:
            logger.warning("leave requests refresh failed", extra={"error": str(e)})
            return []

    def leave_today(self, today: date) -> Optional[LeaveRequest]:
        if not self.enabled:
            return None
        leaves = self._cache.get_data(self.leave_key) or []
        return approved_leave_for(leaves, today)

    def _notify(self) -> Optional[AttendanceSnapshot]:
        # Overlapping refreshes may finish out of order; always publish what the cache holds.
        snapshot = self._cache.get_data(self.key)
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def handle_app_state(self, next_state: AppState | str) -> bool:
        """Refresh when the app comes back to the foreground. Returns True if it refreshed."""

        next_state = AppState(next_state)
        previous, self._app_state = self._app_state, next_state
        if previous in _BACKGROUND_STATES and next_state == AppState.ACTIVE:
            logger.info("app resumed, refreshing attendance")
            self._cache.invalidate(self.key)
            return True
        return False

    def start(self, *, poll: bool = True) -> None:
        """Subscribe to invalidations and (optionally) start the background poller."""

        if not self.enabled or self._unsubscribe:
            return
        self._unsubscribe.append(self._cache.subscribe(self.key, lambda _key: self.refresh()))
        if self._requests is not None:
            self._unsubscribe.append(self._cache.subscribe(self.leave_key, lambda _key: self.refresh_leaves()))
        if not poll:
            return
        self._stop.clear()
        self._poller = threading.Thread(target=self._poll_loop, name="attendance-poller", daemon=True)
        self._poller.start()

    def stop(self) -> None:
        self._stop.set()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        if self._poller is not None and self._poller is not threading.current_thread():
            self._poller.join(timeout=1.0)
        self._poller = None

    def _poll_loop(self) -> None:
        while not self._stop.wait(self._poll_interval):
            try:
                self.refresh()
            except Exception:
                logger.exception("attendance poll failed")
