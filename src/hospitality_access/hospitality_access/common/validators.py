from __future__ import annotations

from enum import Enum
from typing import Optional, Type, TypeVar

from ..core.constants import MAX_COMPANIONS, MAX_NOTES_LENGTH
from ..core.exceptions import ValidationError

E = TypeVar("E", bound=Enum)


def require_max_length(value: Optional[str], field_name: str, max_len: int) -> Optional[str]:
    if value is not None and len(value) > max_len:
        raise ValidationError(f"{field_name} cannot exceed {max_len} characters")
    return value


def validate_notes(notes: Optional[str]) -> Optional[str]:
    notes = require_max_length(notes, "Notes", MAX_NOTES_LENGTH)
    if notes is not None:
        notes = notes.strip() or None
    return notes


def validate_companions(companions) -> int:
    try:
        count = int(companions)
    except (TypeError, ValueError):
        raise ValidationError(f"Companions must be a number between 0 and {MAX_COMPANIONS}") from None
    if count < 0 or count > MAX_COMPANIONS:
        raise ValidationError(f"Companions must be a number between 0 and {MAX_COMPANIONS}")
    return count


def parse_enum(enum_cls: Type[E], value, field_name: str) -> Optional[E]:
    """Parse an optional enum value, ``None``/empty meaning "not given"."""
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field_name} '{value}' (allowed: {allowed})") from None
