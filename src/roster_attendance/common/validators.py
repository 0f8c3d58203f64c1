from __future__ import annotations

from typing import Optional

from ..core.enums import AttendanceStatus
from ..core.exceptions import RemarksRequiredError, ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} must not be empty")
    return value.strip()


def normalize_remarks(status: AttendanceStatus, remarks: Optional[str]) -> str:
    """Return the remarks to store alongside ``status``.

    LATE and EXCUSED need non-empty remarks; PRESENT and ABSENT always carry
    empty remarks.
    """
    if not status.requires_remarks:
        return ""
    if not remarks or not remarks.strip():
        raise RemarksRequiredError(f"Remarks are required when marking a student {status.value}")
    return remarks.strip()


def parse_status(value: object) -> AttendanceStatus:
    try:
        return AttendanceStatus(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown attendance status: {value!r}") from None
