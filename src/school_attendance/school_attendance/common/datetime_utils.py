from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string (or the date part of an ISO timestamp) into date."""
    return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp sent by the backend.

    Accepts the JavaScript ``Z`` suffix. Naive values are treated as UTC.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def now_utc() -> datetime:
    """Current time (aware, UTC).

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def format_time_remaining(end: Optional[datetime], now: datetime) -> str:
    """``"1h 5m left"`` until ``end``, or ``"Closed"`` once it passed."""
    if end is None:
        return ""
    seconds = int((end - now).total_seconds())
    if seconds <= 0:
        return "Closed"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}h {minutes}m left"
