from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from ..common.datetime_utils import parse_api_date


@dataclass(frozen=True)
class Registration:
    """Enrollment of one student in one class (read-only here)."""

    id: int
    student_id: int
    first_name: str
    last_name: str
    status: str = ""

    @property
    def student_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Registration":
        student = payload.get("Student") or {}
        return cls(
            id=int(payload["ID"]),
            student_id=int(payload["StudentID"]),
            first_name=student.get("FirstName") or "",
            last_name=student.get("LastName") or "",
            status=payload.get("Status") or "",
        )


@dataclass(frozen=True)
class StudentClass:
    """A class offering, listed on the class overview."""

    id: int
    name: str
    course_name: str = ""
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "StudentClass":
        course = payload.get("Course") or {}
        period = payload.get("Period") or {}
        start = period.get("Start")
        end = period.get("End")
        return cls(
            id=int(payload["ID"]),
            name=payload.get("Name") or "",
            course_name=course.get("Name") or "",
            period_start=parse_api_date(start) if start else None,
            period_end=parse_api_date(end) if end else None,
        )
