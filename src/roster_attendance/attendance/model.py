from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from ..common.datetime_utils import format_iso_date, parse_api_date
from ..common.validators import parse_status
from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceEntry:
    """A dated status row as returned by the student attendance report."""

    date: date
    status: AttendanceStatus
    remarks: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "AttendanceEntry":
        return cls(
            date=parse_api_date(str(payload["date"])),
            status=parse_status(payload["status"]),
            remarks=payload.get("remarks") or "",
        )


@dataclass(frozen=True)
class AttendanceRecord:
    """Persisted attendance of one registration on one day."""

    registration_id: int
    date: date
    status: AttendanceStatus
    remarks: str = ""

    def to_api(self) -> dict:
        return {
            "registration_id": int(self.registration_id),
            "date": format_iso_date(self.date),
            "status": self.status.value,
            "remarks": self.remarks or "",
        }


@dataclass(frozen=True)
class StagedEdit:
    """Unsaved operator intent for one registration on the session's date."""

    status: AttendanceStatus
    remarks: str = ""


@dataclass(frozen=True)
class PendingSelection:
    """A LATE/EXCUSED choice waiting for remarks before it may be staged."""

    registration_id: int
    status: AttendanceStatus


@dataclass(frozen=True)
class EffectiveAttendance:
    """What the operator sees for a registration: staged entry, else persisted record, else nothing.

    ``source`` is ``"staged"``, ``"persisted"`` or ``None``; status and remarks
    always come from the same layer.
    """

    registration_id: int
    status: Optional[AttendanceStatus] = None
    remarks: str = ""
    source: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "registration_id": self.registration_id,
            "status": self.status.value if self.status else None,
            "remarks": self.remarks,
            "source": self.source,
        }
