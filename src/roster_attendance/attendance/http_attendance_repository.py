from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Sequence

from ..api.connection import ApiConnection
from ..common.datetime_utils import format_iso_date
from .model import AttendanceEntry, AttendanceRecord
from .repository import AttendanceRepository


class HttpAttendanceRepository(AttendanceRepository):
    def __init__(self, conn: ApiConnection):
        self._conn = conn

    def fetch_attendance_for_student_on_range(
        self,
        student_id: int,
        class_id: int,
        start_date: date,
        end_date: date,
    ) -> Sequence[AttendanceEntry]:
        report = self._conn.get(
            f"attendance/students/{int(student_id)}/report",
            params={
                "studentClassId": class_id,
                "startDate": format_iso_date(start_date),
                "endDate": format_iso_date(end_date),
            },
            failure="Failed to fetch student attendance report",
        )
        rows = (report or {}).get("records") or []
        entries = [AttendanceEntry.from_api(r) for r in rows]
        return [e for e in entries if start_date <= e.date <= end_date]

    def commit_attendance(self, records: Sequence[AttendanceRecord]) -> None:
        self._conn.post(
            "attendance/bulk",
            {"records": [r.to_api() for r in records]},
            failure="Failed to record attendance",
        )

    def fetch_class_attendance_report(
        self,
        class_id: int,
        start_date: date,
        end_date: date,
        *,
        period: str = "day",
    ) -> Mapping[str, Any]:
        report = self._conn.get(
            f"attendance/classes/{int(class_id)}/report",
            params={
                "startDate": format_iso_date(start_date),
                "endDate": format_iso_date(end_date),
                "period": period,
            },
            failure="Failed to fetch class attendance report",
        )
        return report or {}
