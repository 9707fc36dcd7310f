from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.web import arg_datetime, arg_int, current_role, current_user_id, login_required
from ..core.enums import Role
from ..core.exceptions import AuthorizationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    statistics = container.statistics

    @app.route("/api/students/<int:student_id>/summary", methods=["GET"], endpoint="api_student_summary")
    @login_required()
    def student_summary(student_id: int):
        # Students may only look at their own numbers.
        if current_role() == Role.STUDENT and student_id != current_user_id():
            raise AuthorizationError("Students can only view their own summary")

        summary = statistics.student_summary(
            student_id,
            classroom_id=arg_int(request.args.get("classroom_id"), "classroom_id"),
            start=arg_datetime(request.args.get("start"), "start"),
            end=arg_datetime(request.args.get("end"), "end"),
        )
        return jsonify({"success": True, "summary": summary.to_dict()})

    @app.route("/api/classrooms/<int:classroom_id>/summary", methods=["GET"], endpoint="api_classroom_summary")
    @login_required(Role.TEACHER, Role.ADMIN)
    def classroom_summary(classroom_id: int):
        summary = statistics.classroom_summary(
            classroom_id,
            session_id=arg_int(request.args.get("session_id"), "session_id"),
        )
        return jsonify({"success": True, "summary": summary.to_dict()})

    @app.route("/api/sessions/<int:session_id>/statistics", methods=["POST"], endpoint="api_session_recompute")
    @login_required(Role.TEACHER, Role.ADMIN)
    def recompute(session_id: int):
        summary = statistics.recompute(session_id)
        return jsonify({"success": True, "statistics": summary.to_dict()})
