from __future__ import annotations

from datetime import date

from flask import Flask, g, jsonify, request

from ..api.auth import bearer_required
from ..api.errors import error_response
from ..common.datetime_utils import format_iso_date, parse_iso_date, today_local
from ..container import Container
from ..core.enums import SortField, SortOrder
from ..core.exceptions import DomainError
from .model import Registration, StudentClass


def _class_row(c: StudentClass, *, has_attendance_today: bool) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "course_name": c.course_name,
        "period_start": format_iso_date(c.period_start) if c.period_start else None,
        "period_end": format_iso_date(c.period_end) if c.period_end else None,
        "has_attendance_today": has_attendance_today,
    }


def _registration_row(r: Registration) -> dict:
    return {
        "id": r.id,
        "student_id": r.student_id,
        "first_name": r.first_name,
        "last_name": r.last_name,
        "student_name": r.student_name,
        "status": r.status,
    }


def register(app: Flask, container: Container) -> None:
    def _parse_date_arg(name: str, default: date) -> date:
        value = request.args.get(name)
        return parse_iso_date(value) if value else default

    @app.route("/api/classes", methods=["GET"], endpoint="list_classes")
    @bearer_required
    def list_classes():
        today = today_local()
        try:
            start = _parse_date_arg("startDate", today)
            end = _parse_date_arg("endDate", today)
        except ValueError:
            return jsonify({"success": False, "message": "startDate/endDate must be YYYY-MM-DD"}), 400

        try:
            view = container.roster_service(g.access_token).list_classes(start=start, end=end)
            view.set_filter(request.args.get("q", ""))
            items = view.page(request.args.get("page", 1, type=int))
            with_attendance = container.attendance_service(g.access_token).classes_with_attendance_on(
                [c.id for c in items], today
            )
        except DomainError as e:
            return error_response(e)

        return jsonify(
            {
                "success": True,
                "classes": [_class_row(c, has_attendance_today=c.id in with_attendance) for c in items],
                "page": view.current_page,
                "total_pages": view.total_pages,
                "total_count": view.total_count,
            }
        )

    @app.route("/api/classes/<int:class_id>/roster", methods=["GET"], endpoint="class_roster")
    @bearer_required
    def class_roster(class_id: int):
        """Current roster page with each visible student's effective attendance.

        Query arguments update the view state kept for this operator:
        ``q`` (search), ``sort``/``order`` or ``toggle`` (header click), ``page``.
        """

        try:
            opened = container.class_session(g.access_token, class_id)
        except DomainError as e:
            return error_response(e)

        view = opened.roster
        try:
            if "q" in request.args:
                view.set_filter(request.args["q"])
            if "toggle" in request.args:
                view.toggle_sort(request.args["toggle"])
            elif "sort" in request.args:
                view.set_sort(request.args["sort"], request.args.get("order", SortOrder.ASC.value))
        except ValueError:
            fields = ", ".join(f.value for f in SortField)
            return jsonify({"success": False, "message": f"sort must be one of: {fields}; order asc|desc"}), 400

        if "page" in request.args:
            view.page(request.args.get("page", 1, type=int))

        items = view.items
        effective = opened.session.snapshot([r.id for r in items])
        return jsonify(
            {
                "success": True,
                "registrations": [
                    {**_registration_row(r), "attendance": effective[r.id].to_dict()} for r in items
                ],
                "page": view.current_page,
                "total_pages": view.total_pages,
                "total_count": view.total_count,
                "query": view.query,
                "sort": view.sort_field.value,
                "order": view.sort_order.value,
                "session": opened.session.to_dict([]),
            }
        )
