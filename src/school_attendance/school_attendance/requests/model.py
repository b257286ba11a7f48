from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from ..common.datetime_utils import parse_iso_date
from ..core.enums import LeaveType, RegularizationStatus, RequestStatus


@dataclass
class LeaveRequestDraft:
    """Transient form state of a leave request. Never persisted locally."""

    leave_type: LeaveType | str = LeaveType.CASUAL
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: str = ""
    emergency_contact: str = ""
    emergency_contact_phone: str = ""

    @property
    def total_days(self) -> Optional[int]:
        """Inclusive day count; ``None`` until both dates are set."""
        if self.start_date is None or self.end_date is None:
            return None
        return (self.end_date - self.start_date).days + 1


@dataclass
class RegularizationRequestDraft:
    date: Optional[date] = None
    requested_status: RegularizationStatus | str = RegularizationStatus.PRESENT
    reason: str = ""


@dataclass(frozen=True)
class NewLeaveRequest:
    """Validated leave request ready to be sent."""

    user_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str
    total_days: int
    emergency_contact: Optional[str] = None
    emergency_contact_phone: Optional[str] = None

    def to_api(self) -> dict:
        body: dict[str, Any] = {
            "userId": self.user_id,
            "leaveType": self.leave_type.value,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "reason": self.reason,
            "totalDays": self.total_days,
        }
        if self.emergency_contact:
            body["emergencyContact"] = self.emergency_contact
        if self.emergency_contact_phone:
            body["emergencyContactPhone"] = self.emergency_contact_phone
        return body


@dataclass(frozen=True)
class NewRegularizationRequest:
    user_id: str
    date: date
    requested_status: RegularizationStatus
    reason: str

    def to_api(self) -> dict:
        return {
            "userId": self.user_id,
            "date": self.date.isoformat(),
            "requestedStatus": self.requested_status.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class LeaveRequest:
    """Leave request as listed by the server."""

    request_id: Optional[str]
    leave_type: Optional[str]
    start_date: date
    end_date: date
    status: Optional[RequestStatus]
    total_days: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "LeaveRequest":
        try:
            status = RequestStatus(data.get("status"))
        except ValueError:
            status = None
        request_id = data.get("id")
        return cls(
            request_id=str(request_id) if request_id is not None else None,
            leave_type=data.get("leaveType"),
            start_date=parse_iso_date(str(data["startDate"])),
            end_date=parse_iso_date(str(data["endDate"])),
            status=status,
            total_days=data.get("totalDays"),
            reason=data.get("reason"),
        )

