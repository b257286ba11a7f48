from __future__ import annotations

from ..api.client import ApiClient
from ..core.exceptions import TransportError
from .model import AttendanceSnapshot, MarkCommand, MarkResult
from .repository import AttendanceRepository


class HttpAttendanceRepository(AttendanceRepository):
    def __init__(self, api: ApiClient):
        self._api = api

    def get_today(self, *, school_id: str, user_id: str) -> AttendanceSnapshot:
        data = self._api.get(f"/schools/{school_id}/attendance/mark", params={"userId": user_id})
        if not isinstance(data, dict):
            raise TransportError("Unexpected attendance payload")
        try:
            return AttendanceSnapshot.from_api(data)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise TransportError(f"Unexpected attendance payload: {e}") from e

    def mark(self, *, school_id: str, command: MarkCommand) -> MarkResult:
        data = self._api.post(f"/schools/{school_id}/attendance/mark", json=command.to_api())
        return MarkResult.from_api(data if isinstance(data, dict) else None)
