from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from datetime import date
from enum import Enum
from functools import wraps
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..common.datetime_utils import format_iso_date, shift_days, today_local
from ..common.validators import normalize_remarks
from ..core.constants import DEFAULT_SAVE_SUCCESS_SECONDS
from ..core.enums import AttendanceStatus, SessionState
from ..core.exceptions import (
    CommitInProgressError,
    EmptyCommitError,
    InvalidDateError,
    NoPendingSelectionError,
    NotEditableError,
    RemarksRequiredError,
    TransportError,
    UnknownRegistrationError,
)
from ..roster.model import Registration
from .loader import LoadTicket, PersistedLayerLoader
from .model import AttendanceRecord, EffectiveAttendance, PendingSelection, StagedEdit
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


def _serialized(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._state_lock:
            return method(self, *args, **kwargs)

    return wrapper


class _Event(str, Enum):
    SELECT_DATE = "select_date"
    ENTER_EDIT = "enter_edit_mode"
    EXIT_EDIT = "exit_edit_mode"
    BEGIN_COMMIT = "commit"
    BEGIN_COMMIT_ONE = "commit_one"


_TRANSITIONS: Dict[tuple, SessionState] = {
    (SessionState.VIEWING, _Event.SELECT_DATE): SessionState.VIEWING,
    (SessionState.EDITING, _Event.SELECT_DATE): SessionState.VIEWING,
    (SessionState.VIEWING, _Event.ENTER_EDIT): SessionState.EDITING,
    (SessionState.EDITING, _Event.ENTER_EDIT): SessionState.EDITING,
    (SessionState.VIEWING, _Event.EXIT_EDIT): SessionState.VIEWING,
    (SessionState.EDITING, _Event.EXIT_EDIT): SessionState.VIEWING,
    (SessionState.EDITING, _Event.BEGIN_COMMIT): SessionState.SAVING,
    (SessionState.VIEWING, _Event.BEGIN_COMMIT_ONE): SessionState.SAVING,
    (SessionState.EDITING, _Event.BEGIN_COMMIT_ONE): SessionState.SAVING,
}


class AttendanceEditSession:
    """Attendance of one class on one selected date.

    Two layers per registration: the persisted layer (what the remote service
    confirmed for the selected date) and the staged layer (unsaved operator
    edits). Readers only ever see ``effective()``, which takes a whole entry
    from exactly one layer.

    Only today's attendance is editable. Choosing LATE or EXCUSED parks the
    choice in ``pending`` until remarks are confirmed, so a staged entry never
    exists without the remarks its status requires.

    Persisted-layer fetches run on the loader's executor and may finish in any
    order; each result is applied only if it still belongs to the latest
    reload of the currently selected date.
    """

    def __init__(
        self,
        class_id: int,
        registrations: Sequence[Registration],
        attendance: AttendanceRepository,
        loader: PersistedLayerLoader,
        *,
        today: Callable[[], date] = today_local,
        clock: Callable[[], float] = time.monotonic,
        save_success_seconds: float = DEFAULT_SAVE_SUCCESS_SECONDS,
    ):
        self._class_id = int(class_id)
        self._registrations: Dict[int, Registration] = {r.id: r for r in registrations}
        self._attendance = attendance
        self._loader = loader
        self._today = today
        self._clock = clock
        self._save_success_seconds = float(save_success_seconds)

        # Guarded by _state_lock: requests for one session arrive on separate threads.
        self._state_lock = threading.RLock()
        self._state = SessionState.VIEWING
        self._selected_date = self._today()
        self._staged: Dict[int, StagedEdit] = {}
        self._pending: Optional[PendingSelection] = None
        self._saved_at: Optional[float] = None
        self.last_error: Optional[str] = None

        # Guarded by _lock: fetch callbacks arrive on executor threads.
        self._lock = threading.Lock()
        self._persisted: Dict[int, AttendanceRecord] = {}
        self._ticket = LoadTicket(on_date=self._selected_date, generation=0)
        self._in_flight: set[int] = set()
        self._fetch_failures: set[int] = set()
        self._promoted: set[int] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def class_id(self) -> int:
        return self._class_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def selected_date(self) -> date:
        return self._selected_date

    @property
    def is_today(self) -> bool:
        return self._selected_date == self._today()

    @property
    def can_edit(self) -> bool:
        return self._state is SessionState.EDITING and self.is_today

    @property
    def pending(self) -> Optional[PendingSelection]:
        return self._pending

    @property
    def staged(self) -> Dict[int, StagedEdit]:
        return dict(self._staged)

    @property
    def staged_count(self) -> int:
        return len(self._staged)

    @property
    def has_changes(self) -> bool:
        return bool(self._staged)

    @property
    def persisted(self) -> Dict[int, AttendanceRecord]:
        with self._lock:
            return dict(self._persisted)

    @property
    def loading(self) -> bool:
        with self._lock:
            return bool(self._in_flight)

    @property
    def fetch_failures(self) -> set[int]:
        with self._lock:
            return set(self._fetch_failures)

    @property
    def save_success(self) -> bool:
        if self._saved_at is None:
            return False
        return self._clock() - self._saved_at < self._save_success_seconds

    def _transition(self, event: _Event) -> SessionState:
        nxt = _TRANSITIONS.get((self._state, event))
        if nxt is None:
            if self._state is SessionState.SAVING:
                raise CommitInProgressError("A save is already in progress")
            raise NotEditableError(f"Cannot {event.value} while {self._state.value.lower()}")
        return nxt

    def _require_editing(self) -> None:
        if self._state is SessionState.SAVING:
            raise CommitInProgressError("A save is already in progress")
        if self._state is not SessionState.EDITING:
            raise NotEditableError("Attendance is not in edit mode")
        if not self.is_today:
            raise NotEditableError("Only today's attendance can be edited")

    def _require_known(self, registration_ids: Iterable[int]) -> List[int]:
        ids = [int(i) for i in registration_ids]
        unknown = [i for i in ids if i not in self._registrations]
        if unknown:
            raise UnknownRegistrationError(f"Unknown registration id(s): {', '.join(map(str, unknown))}")
        return ids

    # ------------------------------------------------------------------
    # Date selection and the persisted layer
    # ------------------------------------------------------------------

    @_serialized
    def select_date(self, on_date: date) -> List[Future]:
        if on_date > self._today():
            raise InvalidDateError(f"Cannot select a future date ({format_iso_date(on_date)})")
        nxt = self._transition(_Event.SELECT_DATE)

        self._state = nxt
        self._selected_date = on_date
        self._staged.clear()
        self._pending = None
        self._saved_at = None
        self.last_error = None
        return self.reload()

    @_serialized
    def previous_day(self) -> List[Future]:
        return self.select_date(shift_days(self._selected_date, -1))

    @_serialized
    def next_day(self) -> Optional[List[Future]]:
        """Move one day forward; returns None (and changes nothing) when already at today."""
        nxt = shift_days(self._selected_date, 1)
        if nxt > self._today():
            return None
        return self.select_date(nxt)

    def go_to_today(self) -> List[Future]:
        return self.select_date(self._today())

    def reload(self) -> List[Future]:
        """Refetch the persisted layer of the selected date for every known registration."""
        with self._lock:
            ticket = LoadTicket(on_date=self._selected_date, generation=self._ticket.generation + 1)
            self._ticket = ticket
            self._persisted.clear()
            self._fetch_failures.clear()
            self._promoted.clear()
            self._in_flight = set(self._registrations)

        logger.debug(
            "Reloading attendance for class %s on %s (%d registrations)",
            self._class_id,
            format_iso_date(ticket.on_date),
            len(self._registrations),
        )
        return [self._submit(reg, ticket) for reg in list(self._registrations.values())]

    def retry_fetch(self, registration_id: int) -> Future:
        """Refetch a single registration's persisted record for the current reload."""
        (rid,) = self._require_known([registration_id])
        with self._lock:
            ticket = self._ticket
            self._fetch_failures.discard(rid)
            self._promoted.discard(rid)
            self._in_flight.add(rid)
        return self._submit(self._registrations[rid], ticket)

    def _submit(self, registration: Registration, ticket: LoadTicket) -> Future:
        future = self._loader.submit(registration, self._class_id, ticket.on_date)
        future.add_done_callback(lambda f, r=registration, t=ticket: self._on_fetched(r, t, f))
        return future

    def _on_fetched(self, registration: Registration, ticket: LoadTicket, future: Future) -> None:
        error = future.exception()
        with self._lock:
            if ticket != self._ticket or ticket.on_date != self._selected_date:
                logger.debug(
                    "Discarding stale attendance for registration %s (%s)",
                    registration.id,
                    format_iso_date(ticket.on_date),
                )
                return

            self._in_flight.discard(registration.id)
            if registration.id in self._promoted:
                # a save landed after this fetch was issued
                return
            if error is not None:
                self._fetch_failures.add(registration.id)
                self._persisted.pop(registration.id, None)
            else:
                record = future.result()
                if record is None:
                    self._persisted.pop(registration.id, None)
                else:
                    self._persisted[registration.id] = record

        if isinstance(error, TransportError):
            logger.warning(
                "Failed to fetch attendance for student %s on %s: %s",
                registration.student_id,
                format_iso_date(ticket.on_date),
                error,
            )
        elif error is not None:
            logger.error(
                "Unexpected error fetching attendance for student %s",
                registration.student_id,
                exc_info=error,
            )

    # ------------------------------------------------------------------
    # Edit mode and the staged layer
    # ------------------------------------------------------------------

    @_serialized
    def enter_edit_mode(self) -> None:
        if not self.is_today:
            raise NotEditableError("Only today's attendance can be recorded")
        self._state = self._transition(_Event.ENTER_EDIT)

    @_serialized
    def exit_edit_mode(self) -> None:
        self._state = self._transition(_Event.EXIT_EDIT)
        self._staged.clear()
        self._pending = None

    @_serialized
    def set_status(self, registration_id: int, status: AttendanceStatus) -> Optional[PendingSelection]:
        """Stage PRESENT/ABSENT at once; park LATE/EXCUSED as the pending selection.

        Returns the pending selection when remarks are still needed.
        """
        self._require_editing()
        (rid,) = self._require_known([registration_id])
        status = AttendanceStatus(status)

        if status.requires_remarks:
            self._pending = PendingSelection(registration_id=rid, status=status)
            return self._pending

        self._pending = None
        self._staged[rid] = StagedEdit(status=status, remarks="")
        return None

    @_serialized
    def confirm_remarks(self, remarks: str) -> StagedEdit:
        """Stage the pending LATE/EXCUSED choice together with its remarks."""
        self._require_editing()
        pending = self._pending
        if pending is None:
            raise NoPendingSelectionError("No LATE/EXCUSED selection is waiting for remarks")

        edit = StagedEdit(status=pending.status, remarks=normalize_remarks(pending.status, remarks))
        self._staged[pending.registration_id] = edit
        self._pending = None
        return edit

    @_serialized
    def cancel_remarks(self) -> None:
        self._pending = None

    @_serialized
    def update_remarks(self, registration_id: int, remarks: str) -> StagedEdit:
        """Replace the remarks of a staged LATE/EXCUSED entry."""
        self._require_editing()
        (rid,) = self._require_known([registration_id])
        current = self._staged.get(rid)
        if current is None or not current.status.requires_remarks:
            raise RemarksRequiredError("Remarks can only be edited on a staged LATE or EXCUSED entry")

        edit = StagedEdit(status=current.status, remarks=normalize_remarks(current.status, remarks))
        self._staged[rid] = edit
        return edit

    @_serialized
    def mark_all_visible_present(self, registration_ids: Iterable[int]) -> None:
        self._require_editing()
        ids = self._require_known(registration_ids)

        for rid in ids:
            self._staged[rid] = StagedEdit(status=AttendanceStatus.PRESENT, remarks="")
        if self._pending is not None and self._pending.registration_id in ids:
            self._pending = None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def effective(self, registration_id: int) -> EffectiveAttendance:
        rid = int(registration_id)
        staged = self._staged.get(rid)
        if staged is not None:
            return EffectiveAttendance(rid, staged.status, staged.remarks, "staged")

        with self._lock:
            record = self._persisted.get(rid)
        if record is not None:
            return EffectiveAttendance(rid, record.status, record.remarks, "persisted")
        return EffectiveAttendance(rid)

    def snapshot(self, registration_ids: Optional[Iterable[int]] = None) -> Dict[int, EffectiveAttendance]:
        ids = self._registrations.keys() if registration_ids is None else registration_ids
        return {int(i): self.effective(i) for i in ids}

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self) -> List[AttendanceRecord]:
        """Send every staged entry as one atomic bulk write.

        On success the entries move to the persisted layer; on failure the
        staged layer is left exactly as it was and the TransportError is raised.
        """
        with self._state_lock:
            self._require_editing()
            if not self._staged:
                raise EmptyCommitError("No attendance records to save. Please mark at least one student.")

            committed = dict(self._staged)
            records = [
                AttendanceRecord(
                    registration_id=rid,
                    date=self._selected_date,
                    status=edit.status,
                    remarks=normalize_remarks(edit.status, edit.remarks),
                )
                for rid, edit in sorted(committed.items())
            ]
            resume = self._begin_save(_Event.BEGIN_COMMIT)

        def _unstage() -> None:
            for rid, edit in committed.items():
                if self._staged.get(rid) == edit:
                    del self._staged[rid]

        self._send(records, resume, _unstage)
        return records

    def commit_one(self, registration_id: int, status: AttendanceStatus, remarks: str = "") -> AttendanceRecord:
        """Record a single registration for today without entering edit mode."""
        with self._state_lock:
            if self._state is SessionState.SAVING:
                raise CommitInProgressError("A save is already in progress")
            if not self.is_today:
                raise NotEditableError("Only today's attendance can be recorded")
            (rid,) = self._require_known([registration_id])
            status = AttendanceStatus(status)

            record = AttendanceRecord(
                registration_id=rid,
                date=self._selected_date,
                status=status,
                remarks=normalize_remarks(status, remarks),
            )
            resume = self._begin_save(_Event.BEGIN_COMMIT_ONE)

        def _unstage() -> None:
            self._staged.pop(rid, None)
            if self._pending is not None and self._pending.registration_id == rid:
                self._pending = None

        self._send([record], resume, _unstage)
        return record

    def _begin_save(self, event: _Event) -> SessionState:
        """Enter SAVING; caller holds ``_state_lock``. Returns the state to resume."""
        nxt = self._transition(event)
        resume = self._state
        self._state = nxt
        self._saved_at = None
        self.last_error = None
        return resume

    def _send(self, records: List[AttendanceRecord], resume: SessionState, unstage: Callable[[], None]) -> None:
        # The bulk write runs without _state_lock so reads stay responsive;
        # mutators see SAVING and are rejected until the outcome is applied.
        try:
            self._attendance.commit_attendance(records)
        except Exception as e:
            with self._state_lock:
                if isinstance(e, TransportError):
                    self.last_error = str(e)
                self._state = resume
            if isinstance(e, TransportError):
                logger.error("Saving %d attendance record(s) for class %s failed: %s", len(records), self._class_id, e)
            raise

        with self._state_lock:
            with self._lock:
                for r in records:
                    if r.date == self._selected_date:
                        self._persisted[r.registration_id] = r
                        self._fetch_failures.discard(r.registration_id)
                        self._promoted.add(r.registration_id)
            unstage()
            self._saved_at = self._clock()
            self._state = resume
        logger.info(
            "Saved %d attendance record(s) for class %s on %s",
            len(records),
            self._class_id,
            format_iso_date(records[0].date),
        )

    @_serialized
    def to_dict(self, registration_ids: Optional[Iterable[int]] = None) -> dict:
        pending = self._pending
        return {
            "class_id": self._class_id,
            "state": self._state.value,
            "selected_date": format_iso_date(self._selected_date),
            "is_today": self.is_today,
            "can_edit": self.can_edit,
            "loading": self.loading,
            "staged_count": self.staged_count,
            "has_changes": self.has_changes,
            "save_success": self.save_success,
            "last_error": self.last_error,
            "pending": (
                {"registration_id": pending.registration_id, "status": pending.status.value} if pending else None
            ),
            "fetch_failures": sorted(self.fetch_failures),
            "attendance": [e.to_dict() for e in self.snapshot(registration_ids).values()],
        }
