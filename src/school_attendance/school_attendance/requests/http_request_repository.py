from __future__ import annotations

from typing import Sequence

from ..api.client import ApiClient
from ..core.enums import RequestStatus
from ..core.exceptions import TransportError
from .model import LeaveRequest, NewLeaveRequest, NewRegularizationRequest
from .repository import RequestRepository

_LISTED_STATUSES = ",".join(s.value for s in (RequestStatus.PENDING, RequestStatus.APPROVED, RequestStatus.REJECTED))


class HttpRequestRepository(RequestRepository):
    def __init__(self, api: ApiClient):
        self._api = api

    def submit_leave(self, *, school_id: str, request: NewLeaveRequest) -> None:
        self._api.put(f"/schools/{school_id}/attendance/admin/leave-management", json=request.to_api())

    def list_leave_requests(self, *, school_id: str, user_id: str) -> Sequence[LeaveRequest]:
        data = self._api.get(
            f"/schools/{school_id}/attendance/admin/leave-management",
            params={"userId": user_id, "status": _LISTED_STATUSES},
        )
        rows = (data or {}).get("leaves") if isinstance(data, dict) else data
        try:
            return [LeaveRequest.from_api(row) for row in rows or []]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise TransportError(f"Unexpected leave requests payload: {e}") from e

    def submit_regularization(self, *, school_id: str, request: NewRegularizationRequest) -> None:
        self._api.put(f"/schools/{school_id}/attendance/admin/regularization", json=request.to_api())
