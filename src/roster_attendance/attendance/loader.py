from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..roster.model import Registration
from .model import AttendanceRecord
from .repository import AttendanceRepository


@dataclass(frozen=True)
class LoadTicket:
    """Identifies one persisted-layer reload; results carrying an old ticket are stale."""

    on_date: date
    generation: int


class PersistedLayerLoader:
    """Fan-out fetch of the persisted layer, one independent task per registration."""

    def __init__(self, attendance: AttendanceRepository, *, executor: Executor):
        self._attendance = attendance
        self._executor = executor

    def fetch_one(self, registration: Registration, class_id: int, on_date: date) -> Optional[AttendanceRecord]:
        entries = self._attendance.fetch_attendance_for_student_on_range(
            registration.student_id,
            class_id,
            on_date,
            on_date,
        )
        for e in entries:
            if e.date == on_date:
                return AttendanceRecord(
                    registration_id=registration.id,
                    date=on_date,
                    status=e.status,
                    remarks=e.remarks,
                )
        return None

    def submit(self, registration: Registration, class_id: int, on_date: date) -> "Future[Optional[AttendanceRecord]]":
        return self._executor.submit(self.fetch_one, registration, class_id, on_date)
