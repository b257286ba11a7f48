from __future__ import annotations

from typing import Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", {field_name: f"{field_name} is required"})
    return value.strip()


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    # Surrounding whitespace does not count towards the minimum.
    if not isinstance(value, str) or len(value.strip()) < min_len:
        message = f"{field_name} must be at least {min_len} characters"
        raise ValidationError(message, {field_name: message})
    return value.strip()
