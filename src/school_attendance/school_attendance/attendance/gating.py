from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..core.enums import DeviceState
from .model import AttendanceSnapshot


@dataclass(frozen=True)
class Availability:
    allowed: bool
    reasons: list[str] = field(default_factory=list)


def _availability(reasons: list[str]) -> Availability:
    return Availability(allowed=not reasons, reasons=reasons)


def check_in_availability(
    snapshot: Optional[AttendanceSnapshot],
    *,
    device_state: DeviceState,
    on_leave: bool = False,
) -> Availability:
    if snapshot is None:
        return _availability(["Attendance status not loaded"])

    reasons: list[str] = []
    if not snapshot.is_working_day:
        reasons.append("Today is not a working day")
    if on_leave:
        reasons.append("You are on leave today")
    window = snapshot.windows.check_in
    if window is None or not window.is_open:
        reasons.append("Check-in window is closed")
    if snapshot.attendance is not None and snapshot.attendance.check_in_time is not None:
        reasons.append("Already checked in")
    if device_state != DeviceState.RESOLVED:
        reasons.append("Location not available")
    return _availability(reasons)


def check_out_availability(
    snapshot: Optional[AttendanceSnapshot],
    *,
    device_state: DeviceState,
    on_leave: bool = False,
) -> Availability:
    if snapshot is None:
        return _availability(["Attendance status not loaded"])

    reasons: list[str] = []
    if not snapshot.is_working_day:
        reasons.append("Today is not a working day")
    if on_leave:
        reasons.append("You are on leave today")
    window = snapshot.windows.check_out
    if window is None or not window.is_open:
        reasons.append("Check-out window is closed")
    record = snapshot.attendance
    if record is None or record.check_in_time is None:
        reasons.append("Not checked in yet")
    elif record.check_out_time is not None:
        reasons.append("Already checked out")
    if device_state != DeviceState.RESOLVED:
        reasons.append("Location not available")
    return _availability(reasons)
