from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Protocol, Sequence

from .model import AttendanceEntry, AttendanceRecord


class AttendanceRepository(Protocol):
    def fetch_attendance_for_student_on_range(
        self,
        student_id: int,
        class_id: int,
        start_date: date,
        end_date: date,
    ) -> Sequence[AttendanceEntry]:
        raise NotImplementedError

    def commit_attendance(self, records: Sequence[AttendanceRecord]) -> None:
        """Atomic bulk write: either every record is stored or a TransportError is raised."""

        raise NotImplementedError

    def fetch_class_attendance_report(
        self,
        class_id: int,
        start_date: date,
        end_date: date,
        *,
        period: str = "day",
    ) -> Mapping[str, Any]:
        """Server-computed class report, passed through untouched."""

        raise NotImplementedError
