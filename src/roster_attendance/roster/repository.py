from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import Registration, StudentClass


class RosterRepository(Protocol):
    def fetch_registrations(self, class_id: int) -> Sequence[Registration]:
        raise NotImplementedError


class ClassRepository(Protocol):
    def fetch_student_classes(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Sequence[StudentClass]:
        raise NotImplementedError

    def fetch_student_class(self, class_id: int) -> StudentClass:
        raise NotImplementedError
