from __future__ import annotations

import sys
import threading
from datetime import date, timedelta
from typing import Callable, Optional

import pytest

from roster_attendance.attendance.loader import PersistedLayerLoader
from roster_attendance.attendance.model import AttendanceEntry, AttendanceRecord, StagedEdit
from roster_attendance.attendance.session import AttendanceEditSession
from roster_attendance.core.enums import AttendanceStatus, SessionState
from roster_attendance.core.exceptions import (
    CommitInProgressError,
    EmptyCommitError,
    InvalidDateError,
    NoPendingSelectionError,
    NotEditableError,
    RemarksRequiredError,
    TransportError,
    UnknownRegistrationError,
)
from roster_attendance.roster.model import Registration

CLASS_ID = 42
PRESENT = AttendanceStatus.PRESENT
ABSENT = AttendanceStatus.ABSENT
LATE = AttendanceStatus.LATE
EXCUSED = AttendanceStatus.EXCUSED


class InMemoryAttendance:
    def __init__(self):
        self.entries: dict[tuple[int, date], AttendanceEntry] = {}
        self.commits: list[list[AttendanceRecord]] = []
        self.fail_commit = False
        self.failing_students: set[int] = set()
        self.on_commit: Optional[Callable[[], None]] = None

    def add(self, student_id: int, on_date: date, status: AttendanceStatus, remarks: str = "") -> None:
        self.entries[(student_id, on_date)] = AttendanceEntry(date=on_date, status=status, remarks=remarks)

    def fetch_attendance_for_student_on_range(self, student_id, class_id, start_date, end_date):
        if student_id in self.failing_students:
            raise TransportError("Failed to fetch student attendance report", status_code=503)
        return [e for (sid, d), e in self.entries.items() if sid == student_id and start_date <= d <= end_date]

    def commit_attendance(self, records):
        if self.on_commit:
            self.on_commit()
        if self.fail_commit:
            raise TransportError("Failed to record attendance", status_code=500)
        self.commits.append(list(records))

    def fetch_class_attendance_report(self, class_id, start_date, end_date, *, period="day"):
        return {}


def _registrations() -> list[Registration]:
    return [Registration(id=i, student_id=100 + i, first_name=f"S{i}", last_name="L") for i in range(1, 10)]


@pytest.fixture
def repo() -> InMemoryAttendance:
    return InMemoryAttendance()


@pytest.fixture
def clock():
    class _Clock:
        now = 1000.0

        def __call__(self) -> float:
            return self.now

    return _Clock()


@pytest.fixture
def make_session(fixed_today, immediate_executor, clock):
    def _make(repo, *, executor=None) -> AttendanceEditSession:
        loader = PersistedLayerLoader(repo, executor=executor or immediate_executor)
        session = AttendanceEditSession(
            CLASS_ID,
            _registrations(),
            repo,
            loader,
            today=lambda: fixed_today,
            clock=clock,
            save_success_seconds=3,
        )
        session.go_to_today()
        return session

    return _make


def test_loads_persisted_layer_for_today(make_session, repo, fixed_today):
    repo.add(101, fixed_today, LATE, "bus delay")
    repo.add(102, fixed_today - timedelta(days=1), ABSENT)

    session = make_session(repo)

    assert session.persisted == {1: AttendanceRecord(1, fixed_today, LATE, "bus delay")}
    assert session.loading is False


def test_effective_attendance_takes_whole_entry_from_one_layer(make_session, repo, fixed_today):
    repo.add(101, fixed_today, LATE, "bus delay")
    session = make_session(repo)

    persisted = session.effective(1)
    assert (persisted.status, persisted.remarks, persisted.source) == (LATE, "bus delay", "persisted")

    session.enter_edit_mode()
    session.set_status(1, PRESENT)

    staged = session.effective(1)
    assert (staged.status, staged.remarks, staged.source) == (PRESENT, "", "staged")

    nothing = session.effective(2)
    assert (nothing.status, nothing.remarks, nothing.source) == (None, "", None)


def test_commit_promotes_staged_entries(make_session, repo, fixed_today):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(7, PRESENT)
    session.set_status(9, LATE)
    session.confirm_remarks("bus delay")

    saved = session.commit()

    assert saved == [
        AttendanceRecord(7, fixed_today, PRESENT, ""),
        AttendanceRecord(9, fixed_today, LATE, "bus delay"),
    ]
    assert repo.commits == [saved]
    assert session.persisted[7] == AttendanceRecord(7, fixed_today, PRESENT, "")
    assert session.persisted[9] == AttendanceRecord(9, fixed_today, LATE, "bus delay")
    assert session.staged == {}
    assert session.state is SessionState.EDITING


def test_commit_failure_keeps_both_layers(make_session, repo, fixed_today):
    repo.add(107, fixed_today, ABSENT)
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(7, PRESENT)
    session.set_status(9, EXCUSED)
    session.confirm_remarks("doctor")
    staged_before = session.staged
    persisted_before = session.persisted
    repo.fail_commit = True

    with pytest.raises(TransportError):
        session.commit()

    assert session.staged == staged_before
    assert session.persisted == persisted_before
    assert session.state is SessionState.EDITING
    assert session.last_error == "Failed to record attendance"
    assert session.save_success is False

    repo.fail_commit = False
    session.commit()
    assert session.staged == {}
    assert session.last_error is None


def test_late_without_remarks_is_never_staged(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()

    pending = session.set_status(5, LATE)

    assert pending is not None
    assert (pending.registration_id, pending.status) == (5, LATE)
    assert 5 not in session.staged

    session.cancel_remarks()
    assert session.pending is None
    assert session.staged == {}


def test_blank_remarks_are_rejected_and_choice_stays_pending(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(5, EXCUSED)

    with pytest.raises(RemarksRequiredError):
        session.confirm_remarks("   ")

    assert session.staged == {}
    assert session.pending is not None

    session.confirm_remarks("  family event ")
    assert session.staged == {5: StagedEdit(EXCUSED, "family event")}
    assert session.pending is None


def test_confirm_without_pending_choice_raises(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()

    with pytest.raises(NoPendingSelectionError):
        session.confirm_remarks("anything")


def test_future_date_is_rejected(make_session, repo, fixed_today):
    session = make_session(repo)

    with pytest.raises(InvalidDateError):
        session.select_date(fixed_today + timedelta(days=1))

    assert session.selected_date == fixed_today


def test_past_date_is_read_only(make_session, repo, fixed_today):
    session = make_session(repo)
    session.select_date(fixed_today - timedelta(days=1))

    with pytest.raises(NotEditableError):
        session.enter_edit_mode()

    assert session.state is SessionState.VIEWING


def test_status_changes_require_edit_mode(make_session, repo):
    session = make_session(repo)

    with pytest.raises(NotEditableError):
        session.set_status(1, PRESENT)
    with pytest.raises(NotEditableError):
        session.mark_all_visible_present([1])


def test_mark_all_visible_present_overwrites_only_given_ids(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(2, LATE)
    session.confirm_remarks("x")

    session.mark_all_visible_present([1, 2, 3])

    assert session.staged == {
        1: StagedEdit(PRESENT, ""),
        2: StagedEdit(PRESENT, ""),
        3: StagedEdit(PRESENT, ""),
    }


def test_mark_all_visible_present_leaves_other_staged_entries(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(8, ABSENT)

    session.mark_all_visible_present([1])

    assert session.staged[8] == StagedEdit(ABSENT, "")


def test_unknown_registration_is_rejected_before_mutation(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()

    with pytest.raises(UnknownRegistrationError):
        session.mark_all_visible_present([1, 999])

    assert session.staged == {}


def test_empty_commit_is_rejected(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()

    with pytest.raises(EmptyCommitError):
        session.commit()
    assert repo.commits == []


def test_commit_outside_edit_mode_is_rejected(make_session, repo):
    session = make_session(repo)

    with pytest.raises(NotEditableError):
        session.commit()


def test_second_commit_while_saving_is_rejected(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(1, PRESENT)
    seen = []

    def _reenter():
        assert session.state is SessionState.SAVING
        with pytest.raises(CommitInProgressError):
            session.commit()
        with pytest.raises(CommitInProgressError):
            session.select_date(session.selected_date)
        seen.append(True)

    repo.on_commit = _reenter
    session.commit()

    assert seen == [True]
    assert len(repo.commits) == 1


def test_exit_edit_mode_discards_staged_edits(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(1, PRESENT)
    session.set_status(2, LATE)

    session.exit_edit_mode()

    assert session.state is SessionState.VIEWING
    assert session.staged == {}
    assert session.pending is None


def test_changing_date_clears_staged_layer_and_leaves_edit_mode(make_session, repo, fixed_today):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(1, PRESENT)

    session.previous_day()

    assert session.selected_date == fixed_today - timedelta(days=1)
    assert session.state is SessionState.VIEWING
    assert session.staged == {}


def test_next_day_stops_at_today(make_session, repo, fixed_today):
    session = make_session(repo)

    assert session.next_day() is None
    assert session.selected_date == fixed_today

    session.previous_day()
    session.next_day()
    assert session.selected_date == fixed_today


def test_stale_fetch_does_not_touch_new_date(make_session, repo, deferred_executor, fixed_today):
    d1 = fixed_today - timedelta(days=2)
    d2 = fixed_today - timedelta(days=1)
    repo.add(101, d1, ABSENT)
    repo.add(101, d2, PRESENT)
    session = make_session(repo, executor=deferred_executor)
    deferred_executor.run(deferred_executor.take())

    session.select_date(d1)
    d1_tasks = deferred_executor.take()
    session.select_date(d2)
    d2_tasks = deferred_executor.take()

    deferred_executor.run(d2_tasks)
    deferred_executor.run(d1_tasks)

    assert session.persisted == {1: AttendanceRecord(1, d2, PRESENT, "")}
    assert session.loading is False


def test_fetch_failure_is_per_registration_and_retryable(make_session, repo, fixed_today):
    repo.add(101, fixed_today, PRESENT)
    repo.add(102, fixed_today, ABSENT)
    repo.failing_students = {102}

    session = make_session(repo)

    assert session.persisted == {1: AttendanceRecord(1, fixed_today, PRESENT, "")}
    assert session.fetch_failures == {2}
    assert session.effective(2).status is None

    repo.failing_students = set()
    session.retry_fetch(2)

    assert session.persisted[2] == AttendanceRecord(2, fixed_today, ABSENT, "")
    assert session.fetch_failures == set()


def test_fetch_finishing_after_commit_does_not_undo_it(make_session, repo, deferred_executor, fixed_today):
    session = make_session(repo, executor=deferred_executor)
    in_flight = deferred_executor.take()
    session.enter_edit_mode()
    session.set_status(1, ABSENT)

    session.commit()
    deferred_executor.run(in_flight)

    assert session.persisted[1] == AttendanceRecord(1, fixed_today, ABSENT, "")


def test_commit_one_outside_edit_mode(make_session, repo, fixed_today):
    session = make_session(repo)

    record = session.commit_one(3, LATE, "traffic")

    assert record == AttendanceRecord(3, fixed_today, LATE, "traffic")
    assert repo.commits == [[record]]
    assert session.persisted[3] == record
    assert session.state is SessionState.VIEWING


def test_commit_one_requires_remarks_for_late(make_session, repo):
    session = make_session(repo)

    with pytest.raises(RemarksRequiredError):
        session.commit_one(3, LATE, "")
    assert repo.commits == []


def test_commit_one_drops_remarks_for_present(make_session, repo, fixed_today):
    session = make_session(repo)

    record = session.commit_one(3, PRESENT, "ignored")

    assert record.remarks == ""


def test_commit_one_rejects_past_dates(make_session, repo, fixed_today):
    session = make_session(repo)
    session.previous_day()

    with pytest.raises(NotEditableError):
        session.commit_one(3, PRESENT)


def test_commit_one_failure_leaves_staged_entry(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(3, ABSENT)
    repo.fail_commit = True

    with pytest.raises(TransportError):
        session.commit_one(3, PRESENT)

    assert session.staged == {3: StagedEdit(ABSENT, "")}
    assert 3 not in session.persisted


def test_save_success_is_shown_for_a_bounded_time(make_session, repo, clock):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(1, PRESENT)

    session.commit()
    assert session.save_success is True

    clock.now += 3
    assert session.save_success is False


def test_update_remarks_only_on_staged_late_or_excused(make_session, repo):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(1, LATE)
    session.confirm_remarks("bus")
    session.set_status(2, PRESENT)

    assert session.update_remarks(1, "train") == StagedEdit(LATE, "train")
    with pytest.raises(RemarksRequiredError):
        session.update_remarks(1, "")
    with pytest.raises(RemarksRequiredError):
        session.update_remarks(2, "note")


def test_to_dict_exposes_session_summary(make_session, repo, fixed_today):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(4, EXCUSED)

    data = session.to_dict([4])

    assert data["state"] == "EDITING"
    assert data["selected_date"] == "2026-10-19"
    assert data["can_edit"] is True
    assert data["pending"] == {"registration_id": 4, "status": "EXCUSED"}
    assert data["attendance"] == [{"registration_id": 4, "status": None, "remarks": "", "source": None}]


def test_cancel_remarks_discards_choice_and_snapshot_merges_layers(make_session, repo, fixed_today):
    repo.add(103, fixed_today, ABSENT)
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(1, PRESENT)
    session.set_status(2, EXCUSED)

    session.cancel_remarks()

    assert session.pending is None
    assert session.staged_count == 1
    assert session.has_changes is True
    snap = session.snapshot([1, 2, 3])
    assert [snap[i].source for i in (1, 2, 3)] == ["staged", None, "persisted"]
    assert snap[3].status is ABSENT


def test_concurrent_commits_send_one_bulk_write(make_session, repo):
    switch = sys.getswitchinterval()
    sys.setswitchinterval(1e-6)
    try:
        for _ in range(100):
            repo.commits.clear()
            session = make_session(repo)
            session.enter_edit_mode()
            session.set_status(1, PRESENT)
            barrier = threading.Barrier(4)
            outcomes = []

            def _commit():
                barrier.wait()
                try:
                    session.commit()
                    outcomes.append("saved")
                except (CommitInProgressError, EmptyCommitError) as e:
                    outcomes.append(type(e).__name__)

            threads = [threading.Thread(target=_commit) for _ in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert len(outcomes) == 4
            assert outcomes.count("saved") == 1
            assert len(repo.commits) == 1
    finally:
        sys.setswitchinterval(switch)


def test_edit_arriving_during_save_is_rejected_not_dropped(make_session, repo, fixed_today):
    session = make_session(repo)
    session.enter_edit_mode()
    session.set_status(1, PRESENT)
    rejected = []

    def _edit_mid_save():
        try:
            session.set_status(1, ABSENT)
        except CommitInProgressError:
            rejected.append(1)

    repo.on_commit = _edit_mid_save
    session.commit()

    assert rejected == [1]
    assert repo.commits == [[AttendanceRecord(1, fixed_today, PRESENT, "")]]
    assert session.staged == {}
    assert session.effective(1).source == "persisted"

    repo.on_commit = None
    session.set_status(1, ABSENT)
    assert session.staged == {1: StagedEdit(ABSENT, "")}
