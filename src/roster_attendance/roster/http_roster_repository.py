from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..api.connection import ApiConnection
from ..common.datetime_utils import format_iso_date
from .model import Registration, StudentClass
from .repository import ClassRepository, RosterRepository


class HttpRosterRepository(RosterRepository, ClassRepository):
    def __init__(self, conn: ApiConnection):
        self._conn = conn

    def fetch_registrations(self, class_id: int) -> Sequence[Registration]:
        rows = self._conn.get(
            "registrations",
            params={"studentClassId": class_id},
            failure="Failed to fetch registrations",
        )
        return [Registration.from_api(r) for r in rows or []]

    def fetch_student_classes(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Sequence[StudentClass]:
        params = {}
        if start_date:
            params["startDate"] = format_iso_date(start_date)
        if end_date:
            params["endDate"] = format_iso_date(end_date)

        rows = self._conn.get("student-classes", params=params or None, failure="Failed to fetch student classes")
        return [StudentClass.from_api(r) for r in rows or []]

    def fetch_student_class(self, class_id: int) -> StudentClass:
        row = self._conn.get(f"student-classes/{int(class_id)}", failure="Failed to fetch student class")
        return StudentClass.from_api(row)
