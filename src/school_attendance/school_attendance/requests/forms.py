from __future__ import annotations

from dataclasses import asdict, fields
from datetime import date
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from ..common.datetime_utils import parse_iso_date
from ..core.exceptions import ValidationError
from .model import LeaveRequestDraft, RegularizationRequestDraft

DraftT = TypeVar("DraftT", LeaveRequestDraft, RegularizationRequestDraft)

_DATE_FIELDS = {"start_date", "end_date", "date"}
_INVALID_DATE = "Invalid date (YYYY-MM-DD)"


def _label(name: str) -> str:
    return name.replace("_", " ").capitalize()


def _check_type(name: str, value: Any) -> None:
    if name in _DATE_FIELDS:
        if value is not None and not isinstance(value, (str, date)):
            raise ValidationError(_INVALID_DATE, {name: _INVALID_DATE})
    elif not isinstance(value, (str, Enum)):
        message = f"{_label(name)} must be text"
        raise ValidationError(message, {name: message})


def _coerce(name: str, value: Any) -> Any:
    if name in _DATE_FIELDS and isinstance(value, str):
        if not value.strip():
            return None
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError(_INVALID_DATE, {name: _INVALID_DATE})
    return value


class DraftForm(Generic[DraftT]):
    """Modal form holding a draft.

    The draft is created empty on ``open()``, mutated field by field, and
    discarded on ``close()``. A failed submission leaves it untouched.
    """

    def __init__(self, draft_factory: Callable[[], DraftT]):
        self._factory = draft_factory
        self._allowed = {f.name for f in fields(draft_factory())}
        self.draft: Optional[DraftT] = None
        self.errors: dict[str, str] = {}

    @property
    def is_open(self) -> bool:
        return self.draft is not None

    def open(self) -> DraftT:
        self.draft = self._factory()
        self.errors = {}
        return self.draft

    def update(self, **values: Any) -> DraftT:
        if self.draft is None:
            self.open()
        unknown = set(values) - self._allowed
        if unknown:
            raise ValidationError(f"Unknown field: {sorted(unknown)[0]}")
        coerced = {}
        for name, value in values.items():
            _check_type(name, value)
            coerced[name] = _coerce(name, value)
        for name, value in coerced.items():
            setattr(self.draft, name, value)
            self.errors.pop(name, None)
        return self.draft

    def close(self) -> None:
        self.draft = None
        self.errors = {}

    def to_view(self) -> dict:
        if self.draft is None:
            return {"open": False, "values": None, "errors": {}}
        values = {}
        for name, value in asdict(self.draft).items():
            if isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            values[name] = value
        return {"open": True, "values": values, "errors": dict(self.errors)}


class LeaveRequestForm(DraftForm[LeaveRequestDraft]):
    def __init__(self):
        super().__init__(LeaveRequestDraft)

    def to_view(self) -> dict:
        view = super().to_view()
        if self.draft is not None:
            view["total_days"] = self.draft.total_days
        return view


class RegularizationForm(DraftForm[RegularizationRequestDraft]):
    def __init__(self):
        super().__init__(RegularizationRequestDraft)
