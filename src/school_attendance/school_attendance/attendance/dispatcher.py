from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from ..core.enums import Action, MarkType
from ..core.exceptions import (
    ActionBusyError,
    ActionUnavailableError,
    LocationUnavailableError,
    MissingIdentityError,
    ServerRejectedError,
)
from ..requests.model import (
    LeaveRequestDraft,
    NewLeaveRequest,
    NewRegularizationRequest,
    RegularizationRequestDraft,
)
from ..requests.service import RequestService
from ..session.model import CurrentUser
from .device import DeviceContextResolver
from .gating import Availability, check_in_availability, check_out_availability
from .model import AttendanceSnapshot, MarkCommand, MarkResult
from .query_cache import QueryCache, QueryKey
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkOutcome:
    """Successful check-in/check-out as reported by the server.

    ``is_late`` is the provisional flag of the check-in response; the
    canonical ``late_by_minutes`` arrives with the next fetch.
    """

    type: MarkType
    message: str
    is_late: bool = False
    working_hours: Optional[float] = None


class ActionDispatcher:
    """Sends the four user actions to the backend.

    The server is the only authority on status, lateness and windows, so a
    successful action never patches local state: it invalidates the fetcher's
    query and the refetch brings the new state. No automatic retries.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        request_service: RequestService,
        cache: QueryCache,
        device: DeviceContextResolver,
        *,
        user: Optional[CurrentUser],
        attendance_key: QueryKey,
        leave_key: Optional[QueryKey] = None,
        snapshot: Callable[[], Optional[AttendanceSnapshot]],
        on_leave: Callable[[], bool] = lambda: False,
    ):
        self._attendance = attendance
        self._request_service = request_service
        self._cache = cache
        self._device = device
        self._user = user
        self._attendance_key = attendance_key
        self._leave_key = leave_key
        self._snapshot = snapshot
        self._on_leave = on_leave
        self._locks = {action: threading.Lock() for action in Action}

    def is_busy(self, action: Action) -> bool:
        return self._locks[Action(action)].locked()

    @contextmanager
    def _in_flight(self, action: Action) -> Iterator[None]:
        lock = self._locks[action]
        if not lock.acquire(blocking=False):
            raise ActionBusyError(f"{action.value.replace('_', ' ').capitalize()} is already in progress")
        try:
            yield
        finally:
            lock.release()

    def _require_user(self) -> CurrentUser:
        if self._user is None or not self._user.has_identity:
            raise MissingIdentityError("Unable to load your profile. Please sign in again.")
        return self._user

    def check_in_availability(self) -> Availability:
        return check_in_availability(self._snapshot(), device_state=self._device.state, on_leave=self._on_leave())

    def check_out_availability(self) -> Availability:
        return check_out_availability(self._snapshot(), device_state=self._device.state, on_leave=self._on_leave())

    def check_in(self) -> MarkOutcome:
        return self._mark(MarkType.CHECK_IN, Action.CHECK_IN, self.check_in_availability)

    def check_out(self) -> MarkOutcome:
        return self._mark(MarkType.CHECK_OUT, Action.CHECK_OUT, self.check_out_availability)

    def _mark(self, mark_type: MarkType, action: Action, availability: Callable[[], Availability]) -> MarkOutcome:
        user = self._require_user()
        with self._in_flight(action):
            available = availability()
            if not available.allowed:
                raise ActionUnavailableError(available.reasons[0], available.reasons)
            device = self._device.context
            if device is None:
                raise LocationUnavailableError("Location not available")

            command = MarkCommand(user_id=user.id, type=mark_type, device=device)
            logger.info("sending attendance mark", extra={"type": mark_type.value})
            result: MarkResult = self._attendance.mark(school_id=user.school_id, command=command)
            if not result.success:
                logger.info("attendance mark rejected", extra={"type": mark_type.value, "reason": result.message})
                raise ServerRejectedError(result.message or "Request was rejected")

            logger.info("attendance mark accepted", extra={"type": mark_type.value, "is_late": result.is_late})
            self._cache.invalidate(self._attendance_key)
            return MarkOutcome(
                type=mark_type,
                message=result.message,
                is_late=bool(result.is_late),
                working_hours=result.working_hours,
            )

    def submit_leave(self, draft: LeaveRequestDraft) -> NewLeaveRequest:
        user = self._require_user()
        with self._in_flight(Action.LEAVE_REQUEST):
            request = self._request_service.submit_leave(user=user, draft=draft)
            if self._leave_key is not None:
                self._cache.invalidate(self._leave_key)
            self._cache.invalidate(self._attendance_key)
            return request

    def submit_regularization(self, draft: RegularizationRequestDraft) -> NewRegularizationRequest:
        user = self._require_user()
        with self._in_flight(Action.REGULARIZATION):
            request = self._request_service.submit_regularization(user=user, draft=draft)
            self._cache.invalidate(self._attendance_key)
            return request
