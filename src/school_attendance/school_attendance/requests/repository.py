from __future__ import annotations

from typing import Protocol, Sequence

from .model import LeaveRequest, NewLeaveRequest, NewRegularizationRequest


class RequestRepository(Protocol):
    # Leave requests
    def submit_leave(self, *, school_id: str, request: NewLeaveRequest) -> None:
        raise NotImplementedError

    def list_leave_requests(self, *, school_id: str, user_id: str) -> Sequence[LeaveRequest]:
        raise NotImplementedError

    # Regularization requests
    def submit_regularization(self, *, school_id: str, request: NewRegularizationRequest) -> None:
        raise NotImplementedError
