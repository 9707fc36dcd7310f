from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.validators import optional_float
from ..common.web import arg_int, current_role, current_user_id, error_response, login_required
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceStatus, Role, VerificationMethod
from ..core.exceptions import ValidationError
from ..container import Container
from .model import DeviceInfo
from .service import CheckInRequest
from .strategies.base import CheckInEvidence


def _enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(str(value or "").strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def _evidence(payload: dict) -> CheckInEvidence:
    location = payload.get("location") or {}
    verification = payload.get("verification") or {}
    return CheckInEvidence(
        latitude=optional_float(location.get("latitude"), "latitude"),
        longitude=optional_float(location.get("longitude"), "longitude"),
        accuracy=optional_float(location.get("accuracy"), "accuracy"),
        address=location.get("address"),
        otp_code=verification.get("otp_code"),
        face_match=optional_float(verification.get("face_match"), "face_match"),
        biometric_verified=bool(verification.get("biometric_verified", False)),
        biometric_template=verification.get("template"),
        reason=payload.get("reason"),
        device_info=DeviceInfo(
            user_agent=request.headers.get("User-Agent"),
            platform=(payload.get("device") or {}).get("platform"),
            ip_address=request.remote_addr,
        ),
    )


def register(app: Flask, container: Container) -> None:
    attendance = container.attendance_service
    limiter = container.checkin_limiter

    @app.route("/api/sessions/<int:session_id>/checkin", methods=["POST"], endpoint="api_checkin")
    @login_required(Role.STUDENT)
    def checkin(session_id: int):
        decision = limiter.hit(current_user_id())
        if not decision.allowed:
            return error_response(
                "RATE_LIMIT_EXCEEDED",
                "Too many attempts. Please try again later.",
                429,
                retry_after=decision.retry_after,
            )

        payload = request.get_json(silent=True) or {}
        method = _enum(VerificationMethod, (payload.get("verification") or {}).get("method"), "method")
        record = attendance.mark_attendance(
            CheckInRequest(
                session_id=session_id,
                student_id=current_user_id(),
                method=method,
                evidence=_evidence(payload),
                notes=payload.get("notes"),
            )
        )
        return jsonify({"success": True, "attendance": record.to_dict()}), 201

    @app.route("/api/sessions/<int:session_id>/can-mark", methods=["GET"], endpoint="api_can_mark")
    @login_required(Role.STUDENT)
    def can_mark(session_id: int):
        decision = attendance.can_mark_attendance(session_id, current_user_id())
        return jsonify({"success": True, "can_mark": decision.allowed, "reason": decision.reason})

    @app.route("/api/sessions/<int:session_id>/mark", methods=["POST"], endpoint="api_mark_by_teacher")
    @login_required(Role.TEACHER, Role.ADMIN)
    def mark_by_teacher(session_id: int):
        payload = request.get_json(silent=True) or {}
        student_id = arg_int(payload.get("student_id"), "student_id")
        if student_id is None:
            raise ValidationError("student_id is required")
        record = attendance.mark_by_teacher(
            current_role=current_role(),
            session_id=session_id,
            student_id=student_id,
            status=_enum(AttendanceStatus, payload.get("status"), "status"),
            evidence=_evidence(payload),
        )
        return jsonify({"success": True, "attendance": record.to_dict()}), 201

    @app.route("/api/attendance/<int:attendance_id>", methods=["PATCH"], endpoint="api_attendance_edit")
    @login_required(Role.TEACHER, Role.ADMIN)
    def edit(attendance_id: int):
        payload = request.get_json(silent=True) or {}
        record = attendance.edit_attendance(
            current_role=current_role(),
            actor_id=current_user_id(),
            attendance_id=attendance_id,
            new_status=_enum(AttendanceStatus, payload.get("status"), "status"),
            reason=payload.get("reason") or "",
        )
        return jsonify({"success": True, "attendance": record.to_dict()})

    @app.route("/api/sessions/<int:session_id>/attendance", methods=["GET"], endpoint="api_session_attendance")
    @login_required(Role.TEACHER, Role.ADMIN)
    def session_attendance(session_id: int):
        rows = attendance.session_records(session_id)
        return jsonify({"success": True, "attendance": [r.to_dict() for r in rows]})

    @app.route("/api/attendance/me", methods=["GET"], endpoint="api_attendance_me")
    @login_required(Role.STUDENT)
    def my_attendance():
        limit = arg_int(request.args.get("limit"), "limit") or DEFAULT_HISTORY_LIMIT
        rows = attendance.student_history(current_user_id(), limit=limit)
        return jsonify({"success": True, "attendance": [r.to_dict() for r in rows]})
