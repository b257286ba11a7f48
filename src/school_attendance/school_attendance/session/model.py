from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class CurrentUser:
    """Snapshot of the signed-in user read from the persisted session.

    Read once when the screen mounts and never re-bound afterwards.
    """

    id: Optional[str]
    school_id: Optional[str]
    name: Optional[str] = None
    role: Optional[str] = None

    @property
    def has_identity(self) -> bool:
        return bool(self.id) and bool(self.school_id)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "CurrentUser":
        role = data.get("role")
        if isinstance(role, Mapping):
            role = role.get("name")
        user_id = data.get("id")
        school_id = data.get("schoolId")
        return cls(
            id=str(user_id) if user_id not in (None, "") else None,
            school_id=str(school_id) if school_id not in (None, "") else None,
            name=data.get("name"),
            role=role,
        )
