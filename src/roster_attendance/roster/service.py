from __future__ import annotations

from datetime import date
from typing import Optional

from ..core.constants import DEFAULT_CLASS_PAGE_SIZE, DEFAULT_ROSTER_PAGE_SIZE
from .repository import ClassRepository, RosterRepository
from .view import ClassListView, RosterView


class RosterService:
    def __init__(
        self,
        roster: RosterRepository,
        classes: ClassRepository,
        *,
        roster_page_size: int = DEFAULT_ROSTER_PAGE_SIZE,
        class_page_size: int = DEFAULT_CLASS_PAGE_SIZE,
    ):
        self._roster = roster
        self._classes = classes
        self._roster_page_size = int(roster_page_size)
        self._class_page_size = int(class_page_size)

    def load_roster(self, class_id: int) -> RosterView:
        registrations = self._roster.fetch_registrations(class_id)
        return RosterView(registrations, page_size=self._roster_page_size)

    def list_classes(self, *, start: Optional[date] = None, end: Optional[date] = None) -> ClassListView:
        classes = self._classes.fetch_student_classes(start_date=start, end_date=end)
        return ClassListView(classes, page_size=self._class_page_size)
