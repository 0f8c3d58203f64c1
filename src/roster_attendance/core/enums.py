from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Daily attendance status as stored by the remote attendance service."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"

    @property
    def requires_remarks(self) -> bool:
        return self in REMARKS_REQUIRED


REMARKS_REQUIRED = frozenset({AttendanceStatus.LATE, AttendanceStatus.EXCUSED})


class SessionState(str, Enum):
    """Lifecycle of an attendance edit session."""

    VIEWING = "VIEWING"
    EDITING = "EDITING"
    SAVING = "SAVING"


class SortField(str, Enum):
    NAME = "name"
    STATUS = "status"
    ID = "id"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortOrder":
        return SortOrder.DESC if self is SortOrder.ASC else SortOrder.ASC
