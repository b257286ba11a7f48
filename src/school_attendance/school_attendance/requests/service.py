from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from ..common.datetime_utils import now_utc
from ..common.validators import require_min_length, require_non_empty
from ..core.constants import LEAVE_REASON_MIN_LENGTH, REGULARIZATION_REASON_MIN_LENGTH
from ..core.enums import LeaveType, RegularizationStatus
from ..core.exceptions import MissingIdentityError, ValidationError
from ..session.model import CurrentUser
from .model import (
    LeaveRequestDraft,
    NewLeaveRequest,
    NewRegularizationRequest,
    RegularizationRequestDraft,
)
from .repository import RequestRepository

logger = logging.getLogger(__name__)


def _raise_if_errors(errors: dict[str, str]) -> None:
    if errors:
        raise ValidationError(next(iter(errors.values())), errors)


def _check(errors: dict[str, str], field: str, check: Callable[[], object]) -> None:
    try:
        check()
    except ValidationError as e:
        errors.setdefault(field, str(e))


class RequestService:
    """Validates leave/regularization drafts and submits them."""

    def __init__(self, requests: RequestRepository, *, today: Optional[Callable[[], date]] = None):
        self._requests = requests
        self._today = today or (lambda: now_utc().date())

    @staticmethod
    def _require_identity(user: Optional[CurrentUser]) -> CurrentUser:
        if user is None or not user.has_identity:
            raise MissingIdentityError("Unable to load your profile. Please sign in again.")
        return user

    def validate_leave(self, user_id: str, draft: LeaveRequestDraft) -> NewLeaveRequest:
        errors: dict[str, str] = {}

        leave_type = None
        try:
            leave_type = LeaveType(draft.leave_type)
        except ValueError:
            errors["leave_type"] = "Invalid leave type"

        if draft.start_date is None:
            errors["start_date"] = "Start date is required"
        if draft.end_date is None:
            errors["end_date"] = "End date is required"

        _check(errors, "reason", lambda: require_non_empty(draft.reason, "Reason"))
        _check(errors, "reason", lambda: require_min_length(draft.reason, "Reason", LEAVE_REASON_MIN_LENGTH))

        if draft.start_date and draft.end_date and draft.start_date > draft.end_date:
            errors.setdefault("end_date", "End date must be after start date")

        _raise_if_errors(errors)
        return NewLeaveRequest(
            user_id=user_id,
            leave_type=leave_type,
            start_date=draft.start_date,
            end_date=draft.end_date,
            reason=draft.reason.strip(),
            total_days=draft.total_days,
            emergency_contact=(draft.emergency_contact or "").strip() or None,
            emergency_contact_phone=(draft.emergency_contact_phone or "").strip() or None,
        )

    def validate_regularization(self, user_id: str, draft: RegularizationRequestDraft) -> NewRegularizationRequest:
        errors: dict[str, str] = {}

        if draft.date is None:
            errors["date"] = "Date is required"
        elif draft.date >= self._today():
            errors["date"] = "Can only regularize past dates"

        requested_status = None
        try:
            requested_status = RegularizationStatus(draft.requested_status)
        except ValueError:
            errors["requested_status"] = "Invalid status"

        _check(errors, "reason", lambda: require_non_empty(draft.reason, "Reason"))
        _check(
            errors,
            "reason",
            lambda: require_min_length(draft.reason, "Reason", REGULARIZATION_REASON_MIN_LENGTH),
        )

        _raise_if_errors(errors)
        return NewRegularizationRequest(
            user_id=user_id,
            date=draft.date,
            requested_status=requested_status,
            reason=draft.reason.strip(),
        )

    def submit_leave(self, *, user: Optional[CurrentUser], draft: LeaveRequestDraft) -> NewLeaveRequest:
        user = self._require_identity(user)
        request = self.validate_leave(user.id, draft)
        self._requests.submit_leave(school_id=user.school_id, request=request)
        logger.info(
            "leave request submitted",
            extra={"leave_type": request.leave_type.value, "total_days": request.total_days},
        )
        return request

    def submit_regularization(
        self, *, user: Optional[CurrentUser], draft: RegularizationRequestDraft
    ) -> NewRegularizationRequest:
        user = self._require_identity(user)
        request = self.validate_regularization(user.id, draft)
        self._requests.submit_regularization(school_id=user.school_id, request=request)
        logger.info("regularization request submitted", extra={"requested_status": request.requested_status.value})
        return request
