from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Set

from ..common.datetime_utils import parse_api_date, today_local
from ..core.constants import DEFAULT_SAVE_SUCCESS_SECONDS
from ..core.exceptions import TransportError
from ..roster.view import RosterView
from .loader import PersistedLayerLoader
from .repository import AttendanceRepository
from .session import AttendanceEditSession

logger = logging.getLogger(__name__)

_COUNT_KEYS = ("presentCount", "absentCount", "lateCount", "excusedCount")


@dataclass
class ClassSession:
    """Roster view and edit session of one class, opened together."""

    roster: RosterView
    session: AttendanceEditSession


def has_attendance_on(report: Mapping[str, Any], on_date: date) -> bool:
    """True if the class report's daily bucket for ``on_date`` counts any status."""
    for day in report.get("dailyData") or []:
        raw = day.get("date")
        if not raw or parse_api_date(str(raw)) != on_date:
            continue
        return any(int(day.get(k) or 0) > 0 for k in _COUNT_KEYS)
    return False


class AttendanceService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        *,
        executor: Executor,
        today: Callable[[], date] = today_local,
        save_success_seconds: float = DEFAULT_SAVE_SUCCESS_SECONDS,
    ):
        self._attendance = attendance
        self._executor = executor
        self._today = today
        self._save_success_seconds = save_success_seconds

    def open_session(self, class_id: int, roster: RosterView) -> ClassSession:
        """Build the edit session over the full (unfiltered) roster and start loading today."""
        session = AttendanceEditSession(
            class_id,
            roster.registrations,
            self._attendance,
            PersistedLayerLoader(self._attendance, executor=self._executor),
            today=self._today,
            save_success_seconds=self._save_success_seconds,
        )
        session.go_to_today()
        return ClassSession(roster=roster, session=session)

    def classes_with_attendance_on(self, class_ids: Iterable[int], on_date: date) -> Set[int]:
        """Probe each class report concurrently; a failed probe counts as no attendance."""
        futures = {
            cid: self._executor.submit(self._attendance.fetch_class_attendance_report, cid, on_date, on_date)
            for cid in class_ids
        }

        found: Set[int] = set()
        for cid, future in futures.items():
            try:
                report = future.result()
            except TransportError as e:
                logger.warning("Class report probe failed for class %s: %s", cid, e)
                continue
            if has_attendance_on(report, on_date):
                found.add(cid)
        return found
