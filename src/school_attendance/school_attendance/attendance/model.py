from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from ..common.datetime_utils import parse_iso_datetime
from ..core.enums import AttendanceStatus, DayType, MarkType
from ..core.exceptions import ValidationError


def _enum_or_none(enum_cls, value):
    try:
        return enum_cls(value) if value is not None else None
    except ValueError:
        return None


def _float_or_none(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: the user's attendance for the current day (server owned)."""

    check_in_time: Optional[datetime]
    check_out_time: Optional[datetime]
    status: Optional[AttendanceStatus]
    late_by_minutes: int = 0
    is_late_check_in: bool = False
    live_working_hours: Optional[float] = None
    working_hours: Optional[float] = None

    @property
    def is_checked_in(self) -> bool:
        return self.check_in_time is not None and self.check_out_time is None

    @property
    def is_checked_out(self) -> bool:
        return self.check_out_time is not None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "AttendanceRecord":
        check_in = parse_iso_datetime(data.get("checkInTime"))
        check_out = parse_iso_datetime(data.get("checkOutTime"))
        if check_out is not None and check_in is None:
            raise ValidationError("Attendance record has a check-out without a check-in")
        return cls(
            check_in_time=check_in,
            check_out_time=check_out,
            status=_enum_or_none(AttendanceStatus, data.get("status")),
            late_by_minutes=max(0, int(data.get("lateByMinutes") or 0)),
            is_late_check_in=bool(data.get("isLateCheckIn", False)),
            live_working_hours=_float_or_none(data.get("liveWorkingHours")),
            working_hours=_float_or_none(data.get("workingHours")),
        )


@dataclass(frozen=True)
class AttendanceWindow:
    """Interval during which an action is permitted.

    ``is_open`` is computed by the server at fetch time only.
    """

    start: Optional[datetime]
    end: Optional[datetime]
    is_open: bool
    min_time: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "AttendanceWindow":
        return cls(
            start=parse_iso_datetime(data.get("start")),
            end=parse_iso_datetime(data.get("end")),
            is_open=bool(data.get("isOpen", False)),
            min_time=parse_iso_datetime(data.get("minTime")),
        )


@dataclass(frozen=True)
class AttendanceWindows:
    check_in: Optional[AttendanceWindow] = None
    check_out: Optional[AttendanceWindow] = None

    @classmethod
    def from_api(cls, data: Optional[Mapping[str, Any]]) -> "AttendanceWindows":
        data = data or {}
        check_in = data.get("checkIn")
        check_out = data.get("checkOut")
        return cls(
            check_in=AttendanceWindow.from_api(check_in) if check_in else None,
            check_out=AttendanceWindow.from_api(check_out) if check_out else None,
        )


@dataclass(frozen=True)
class AttendanceConfig:
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[Mapping[str, Any]]) -> Optional["AttendanceConfig"]:
        if not data:
            return None
        return cls(start_time=data.get("startTime"), end_time=data.get("endTime"))


@dataclass(frozen=True)
class MonthlyStats:
    attendance_percentage: Optional[float] = None
    present_days: Optional[int] = None
    absent_days: Optional[int] = None
    late_days: Optional[int] = None
    total_working_days: Optional[int] = None

    @classmethod
    def from_api(cls, data: Optional[Mapping[str, Any]]) -> Optional["MonthlyStats"]:
        if not data:
            return None
        return cls(
            attendance_percentage=_float_or_none(data.get("attendancePercentage")),
            present_days=data.get("presentDays"),
            absent_days=data.get("absentDays"),
            late_days=data.get("lateDays"),
            total_working_days=data.get("totalWorkingDays"),
        )


@dataclass(frozen=True)
class AttendanceSnapshot:
    """Read-model of ``GET /attendance/mark``: everything the screen shows for today."""

    attendance: Optional[AttendanceRecord]
    is_working_day: bool
    day_type: Optional[Union[DayType, str]] = None
    holiday_name: Optional[str] = None
    config: Optional[AttendanceConfig] = None
    windows: AttendanceWindows = field(default_factory=AttendanceWindows)
    monthly_stats: Optional[MonthlyStats] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "AttendanceSnapshot":
        attendance = data.get("attendance")
        day_type = data.get("dayType")
        return cls(
            attendance=AttendanceRecord.from_api(attendance) if attendance else None,
            is_working_day=bool(data.get("isWorkingDay", False)),
            day_type=_enum_or_none(DayType, day_type) or day_type,
            holiday_name=data.get("holidayName"),
            config=AttendanceConfig.from_api(data.get("config")),
            windows=AttendanceWindows.from_api(data.get("windows")),
            monthly_stats=MonthlyStats.from_api(data.get("monthlyStats")),
        )


@dataclass(frozen=True)
class MarkResult:
    success: bool
    message: str
    is_late: Optional[bool] = None
    working_hours: Optional[float] = None

    @classmethod
    def from_api(cls, data: Optional[Mapping[str, Any]]) -> "MarkResult":
        data = data or {}
        is_late = data.get("isLate")
        return cls(
            success=bool(data.get("success", False)),
            message=str(data.get("message") or data.get("error") or ""),
            is_late=bool(is_late) if is_late is not None else None,
            working_hours=_float_or_none(data.get("workingHours")),
        )


@dataclass(frozen=True)
class DeviceLocation:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None

    def to_api(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude, "accuracy": self.accuracy}


@dataclass(frozen=True)
class DeviceInfo:
    device_id: str
    platform: str
    os_version: str
    app_version: str

    def to_api(self) -> dict:
        return {
            "deviceId": self.device_id,
            "platform": self.platform,
            "osVersion": self.os_version,
            "appVersion": self.app_version,
        }


@dataclass(frozen=True)
class DeviceContext:
    """Proof-of-presence metadata attached to check-in/check-out. Never persisted."""

    location: DeviceLocation
    info: DeviceInfo


@dataclass(frozen=True)
class MarkCommand:
    user_id: str
    type: MarkType
    device: DeviceContext

    def to_api(self) -> dict:
        return {
            "userId": self.user_id,
            "type": self.type.value,
            "location": self.device.location.to_api(),
            "deviceInfo": self.device.info.to_api(),
        }
