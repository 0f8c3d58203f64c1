from __future__ import annotations

from functools import wraps

from flask import Flask, g, jsonify, request

from ..api.auth import bearer_required
from ..api.errors import error_response
from ..common.datetime_utils import parse_iso_date
from ..common.validators import parse_status
from ..container import Container
from ..core.exceptions import DomainError, ValidationError


def _staged_row(registration_id: int, status, remarks: str) -> dict:
    return {"registration_id": registration_id, "status": status.value, "remarks": remarks}


def _registration_ids(value) -> list:
    if not isinstance(value, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in value):
        raise ValidationError("registration_ids must be a list of integers")
    return value


def register(app: Flask, container: Container) -> None:
    def with_session(view):
        """Resolve the operator's class session and turn domain errors into JSON responses."""

        @wraps(view)
        def wrapper(class_id: int, *args, **kwargs):
            try:
                opened = container.class_session(g.access_token, class_id)
                return view(opened, *args, **kwargs)
            except DomainError as e:
                return error_response(e)

        return bearer_required(wrapper)

    def _body() -> dict:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    def _state(opened, **extra):
        return jsonify({"success": True, **extra, "session": opened.session.to_dict()})

    @app.route("/api/classes/<int:class_id>/attendance", methods=["GET"], endpoint="attendance_state")
    @with_session
    def attendance_state(opened):
        return _state(opened)

    @app.route("/api/classes/<int:class_id>/attendance", methods=["DELETE"], endpoint="attendance_close")
    @bearer_required
    def attendance_close(class_id: int):
        """Forget the operator's session; the next request reopens it with a fresh roster."""
        closed = container.registry.close(g.access_token, class_id)
        return jsonify({"success": True, "closed": closed})

    @app.route("/api/classes/<int:class_id>/attendance/date", methods=["PUT"], endpoint="attendance_select_date")
    @with_session
    def attendance_select_date(opened):
        value = _body().get("date", "")
        try:
            on_date = parse_iso_date(str(value))
        except ValueError:
            return jsonify({"success": False, "message": "date must be YYYY-MM-DD"}), 400
        opened.session.select_date(on_date)
        return _state(opened)

    @app.route("/api/classes/<int:class_id>/attendance/date/previous", methods=["POST"], endpoint="attendance_previous_day")
    @with_session
    def attendance_previous_day(opened):
        opened.session.previous_day()
        return _state(opened)

    @app.route("/api/classes/<int:class_id>/attendance/date/next", methods=["POST"], endpoint="attendance_next_day")
    @with_session
    def attendance_next_day(opened):
        moved = opened.session.next_day() is not None
        return _state(opened, moved=moved)

    @app.route("/api/classes/<int:class_id>/attendance/date/today", methods=["POST"], endpoint="attendance_today")
    @with_session
    def attendance_today(opened):
        opened.session.go_to_today()
        return _state(opened)

    @app.route("/api/classes/<int:class_id>/attendance/edit", methods=["POST"], endpoint="attendance_enter_edit")
    @with_session
    def attendance_enter_edit(opened):
        opened.session.enter_edit_mode()
        return _state(opened)

    @app.route("/api/classes/<int:class_id>/attendance/edit", methods=["DELETE"], endpoint="attendance_exit_edit")
    @with_session
    def attendance_exit_edit(opened):
        opened.session.exit_edit_mode()
        return _state(opened)

    @app.route(
        "/api/classes/<int:class_id>/attendance/staged/<int:registration_id>",
        methods=["PUT"],
        endpoint="attendance_set_status",
    )
    @with_session
    def attendance_set_status(opened, registration_id: int):
        """Choose a status. LATE/EXCUSED wait for remarks unless ``remarks`` is sent along."""

        body = _body()
        status = parse_status(body.get("status"))
        pending = opened.session.set_status(registration_id, status)
        if pending is not None and body.get("remarks") is not None:
            try:
                opened.session.confirm_remarks(str(body["remarks"]))
            except DomainError:
                opened.session.cancel_remarks()
                raise
            pending = None
        return _state(opened, remarks_required=pending is not None)

    @app.route(
        "/api/classes/<int:class_id>/attendance/staged/<int:registration_id>/remarks",
        methods=["PUT"],
        endpoint="attendance_update_remarks",
    )
    @with_session
    def attendance_update_remarks(opened, registration_id: int):
        edit = opened.session.update_remarks(registration_id, str(_body().get("remarks") or ""))
        return _state(opened, staged=_staged_row(registration_id, edit.status, edit.remarks))

    @app.route("/api/classes/<int:class_id>/attendance/pending", methods=["POST"], endpoint="attendance_confirm_remarks")
    @with_session
    def attendance_confirm_remarks(opened):
        pending = opened.session.pending
        edit = opened.session.confirm_remarks(str(_body().get("remarks") or ""))
        return _state(opened, staged=_staged_row(pending.registration_id, edit.status, edit.remarks))

    @app.route("/api/classes/<int:class_id>/attendance/pending", methods=["DELETE"], endpoint="attendance_cancel_remarks")
    @with_session
    def attendance_cancel_remarks(opened):
        opened.session.cancel_remarks()
        return _state(opened)

    @app.route(
        "/api/classes/<int:class_id>/attendance/mark-all-present",
        methods=["POST"],
        endpoint="attendance_mark_all_present",
    )
    @with_session
    def attendance_mark_all_present(opened):
        # Defaults to everyone matching the current search, as the roster shows them.
        ids = _body().get("registration_ids")
        if ids is None:
            ids = opened.roster.filtered_ids()
        else:
            ids = _registration_ids(ids)
        opened.session.mark_all_visible_present(ids)
        return _state(opened)

    @app.route("/api/classes/<int:class_id>/attendance/commit", methods=["POST"], endpoint="attendance_commit")
    @with_session
    def attendance_commit(opened):
        records = opened.session.commit()
        return _state(
            opened,
            message="Attendance saved successfully!",
            saved=[r.to_api() for r in records],
        )

    @app.route(
        "/api/classes/<int:class_id>/attendance/records/<int:registration_id>",
        methods=["POST"],
        endpoint="attendance_commit_one",
    )
    @with_session
    def attendance_commit_one(opened, registration_id: int):
        body = _body()
        record = opened.session.commit_one(registration_id, parse_status(body.get("status")), str(body.get("remarks") or ""))
        return _state(opened, saved=[record.to_api()])

    @app.route(
        "/api/classes/<int:class_id>/attendance/records/<int:registration_id>/retry",
        methods=["POST"],
        endpoint="attendance_retry_fetch",
    )
    @with_session
    def attendance_retry_fetch(opened, registration_id: int):
        opened.session.retry_fetch(registration_id)
        return _state(opened)
