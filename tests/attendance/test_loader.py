from __future__ import annotations

from datetime import timedelta

from roster_attendance.attendance.loader import PersistedLayerLoader
from roster_attendance.attendance.model import AttendanceEntry, AttendanceRecord
from roster_attendance.core.enums import AttendanceStatus
from roster_attendance.roster.model import Registration


class RangeRepo:
    def __init__(self, entries):
        self.entries = entries
        self.calls = []

    def fetch_attendance_for_student_on_range(self, student_id, class_id, start_date, end_date):
        self.calls.append((student_id, class_id, start_date, end_date))
        return self.entries


def test_fetch_one_maps_entry_to_registration(immediate_executor, fixed_today):
    repo = RangeRepo(
        [
            AttendanceEntry(date=fixed_today - timedelta(days=1), status=AttendanceStatus.ABSENT),
            AttendanceEntry(date=fixed_today, status=AttendanceStatus.EXCUSED, remarks="sick"),
        ]
    )
    loader = PersistedLayerLoader(repo, executor=immediate_executor)
    reg = Registration(id=5, student_id=55, first_name="A", last_name="B")

    record = loader.submit(reg, 9, fixed_today).result()

    assert record == AttendanceRecord(5, fixed_today, AttendanceStatus.EXCUSED, "sick")
    assert repo.calls == [(55, 9, fixed_today, fixed_today)]


def test_fetch_one_without_entry_returns_none(immediate_executor, fixed_today):
    loader = PersistedLayerLoader(RangeRepo([]), executor=immediate_executor)
    reg = Registration(id=5, student_id=55, first_name="A", last_name="B")

    assert loader.fetch_one(reg, 9, fixed_today) is None
