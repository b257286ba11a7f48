from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Daily attendance status assigned by the server."""

    PRESENT = "PRESENT"
    LATE = "LATE"
    ABSENT = "ABSENT"
    ON_LEAVE = "ON_LEAVE"
    HALF_DAY = "HALF_DAY"


class DayType(str, Enum):
    WORKING_DAY = "WORKING_DAY"
    HOLIDAY = "HOLIDAY"
    WEEKEND = "WEEKEND"


class MarkType(str, Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class LeaveType(str, Enum):
    CASUAL = "CASUAL"
    SICK = "SICK"
    EARNED = "EARNED"
    EMERGENCY = "EMERGENCY"


class RegularizationStatus(str, Enum):
    """Statuses a past day can be regularized to."""

    PRESENT = "PRESENT"
    HALF_DAY = "HALF_DAY"
    ON_LEAVE = "ON_LEAVE"


class RequestStatus(str, Enum):
    """Approval workflow state of a leave/regularization request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class Action(str, Enum):
    """User-triggered actions of the self attendance screen."""

    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    LEAVE_REQUEST = "leave_request"
    REGULARIZATION = "regularization"


class AppState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


class DeviceState(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    FAILED = "FAILED"
