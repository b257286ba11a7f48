from __future__ import annotations

from typing import Protocol

from .model import AttendanceSnapshot, MarkCommand, MarkResult


class AttendanceRepository(Protocol):
    def get_today(self, *, school_id: str, user_id: str) -> AttendanceSnapshot:
        raise NotImplementedError

    def mark(self, *, school_id: str, command: MarkCommand) -> MarkResult:
        """Request a check-in or check-out; the server decides the outcome."""

        raise NotImplementedError
