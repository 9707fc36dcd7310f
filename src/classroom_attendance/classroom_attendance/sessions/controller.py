from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local
from ..common.web import arg_date, arg_datetime, arg_int, current_role, current_user_id, login_required
from ..core.constants import DEFAULT_GEOFENCE_RADIUS_METERS, DEFAULT_WINDOW_MINUTES
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container
from .service import NewSession


def _required(payload: dict, key: str):
    value = payload.get(key)
    if value is None or value == "":
        raise ValidationError(f"{key} is required")
    return value


def register(app: Flask, container: Container) -> None:
    sessions = container.session_service

    @app.route("/api/sessions", methods=["POST"], endpoint="api_sessions_create")
    @login_required(Role.TEACHER, Role.ADMIN)
    def create_session():
        payload = request.get_json(silent=True) or {}
        settings = payload.get("settings") or {}
        location = payload.get("location") or {}

        start_time = arg_datetime(_required(payload, "start_time"), "start_time")
        end_time = arg_datetime(_required(payload, "end_time"), "end_time")
        scheduled_date = arg_date(payload.get("scheduled_date"), "scheduled_date") or start_time.date()
        teacher_id = arg_int(payload.get("teacher_id"), "teacher_id") or current_user_id()

        data = NewSession(
            classroom_id=arg_int(_required(payload, "classroom_id"), "classroom_id"),
            teacher_id=teacher_id,
            title=str(payload.get("title") or ""),
            description=payload.get("description"),
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            location_name=str(location.get("name") or ""),
            latitude=_required(location, "latitude"),
            longitude=_required(location, "longitude"),
            radius=location.get("radius", DEFAULT_GEOFENCE_RADIUS_METERS),
            window_minutes=settings.get("window_minutes", DEFAULT_WINDOW_MINUTES),
            allow_late_attendance=bool(settings.get("allow_late_attendance", False)),
            require_location=bool(settings.get("require_location", True)),
            require_biometric=bool(settings.get("require_biometric", False)),
            auto_mark_absent=bool(settings.get("auto_mark_absent", True)),
        )
        created = sessions.schedule_session(data, current_role=current_role(), actor_id=current_user_id())
        return jsonify({"success": True, "session": sessions.get_summary(created.session_id)}), 201

    @app.route("/api/sessions", methods=["GET"], endpoint="api_sessions_list")
    @login_required()
    def list_sessions():
        start = arg_date(request.args.get("start"), "start")
        end = arg_date(request.args.get("end"), "end")
        if not start or not end:
            raise ValidationError("start and end are required")
        classroom_id = arg_int(request.args.get("classroom_id"), "classroom_id")
        rows = sessions.list_by_date_range(start, end, classroom_id=classroom_id)
        now = now_local()
        return jsonify({"success": True, "sessions": [s.summary(now) for s in rows]})

    @app.route("/api/sessions/active", methods=["GET"], endpoint="api_sessions_active")
    @login_required()
    def active_sessions():
        rows = sessions.list_active()
        return jsonify({"success": True, "sessions": [sessions.get_summary(s.session_id) for s in rows]})

    @app.route("/api/sessions/<int:session_id>", methods=["GET"], endpoint="api_sessions_get")
    @login_required()
    def get_session(session_id: int):
        return jsonify({"success": True, "session": sessions.get_summary(session_id)})

    @app.route("/api/sessions/<int:session_id>/start", methods=["POST"], endpoint="api_sessions_start")
    @login_required(Role.TEACHER, Role.ADMIN)
    def start_session(session_id: int):
        started = sessions.start_session(session_id, current_role=current_role(), actor_id=current_user_id())
        return jsonify({"success": True, "session": sessions.get_summary(started.session_id)})

    @app.route("/api/sessions/<int:session_id>/end", methods=["POST"], endpoint="api_sessions_end")
    @login_required(Role.TEACHER, Role.ADMIN)
    def end_session(session_id: int):
        ended = sessions.end_session(session_id, current_role=current_role(), actor_id=current_user_id())
        return jsonify({"success": True, "session": sessions.get_summary(ended.session_id)})

    @app.route("/api/sessions/<int:session_id>/cancel", methods=["POST"], endpoint="api_sessions_cancel")
    @login_required(Role.TEACHER, Role.ADMIN)
    def cancel_session(session_id: int):
        cancelled = sessions.cancel_session(session_id, current_role=current_role(), actor_id=current_user_id())
        return jsonify({"success": True, "session": sessions.get_summary(cancelled.session_id)})

    @app.route("/api/sessions/<int:session_id>/trigger", methods=["POST"], endpoint="api_sessions_trigger")
    @login_required(Role.TEACHER, Role.ADMIN)
    def trigger_attendance(session_id: int):
        sessions.trigger_attendance(session_id, current_role=current_role(), actor_id=current_user_id())
        return jsonify({"success": True})
