from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.factory import VerificationStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .attendance.sweep import AbsentSweeper
from .attendance.verification import VerificationEvaluator
from .classrooms.mysql_classroom_repository import MySQLClassroomRepository
from .classrooms.repository import ClassroomRepository
from .common.locks import KeyedLocks
from .common.rate_limit import SlidingWindowRateLimiter
from .core.constants import DEFAULT_IDENTITY_TIMEOUT_SECONDS, DEFAULT_OTP_STEP_SECONDS
from .database.connection import DBConfig, DatabaseConnection
from .events.broker import ClassroomBroker
from .identity.hmac_provider import HmacIdentityProvider
from .identity.provider import IdentityProvider
from .reports.service import StatisticsAggregator
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.repository import SessionRepository
from .sessions.service import SessionService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    sessions_repo: SessionRepository
    attendance_repo: AttendanceRepository
    classrooms_repo: ClassroomRepository

    identity: IdentityProvider
    broker: ClassroomBroker
    checkin_limiter: SlidingWindowRateLimiter

    statistics: StatisticsAggregator
    session_service: SessionService
    attendance_service: AttendanceService


def build_services(
    *,
    sessions_repo: SessionRepository,
    attendance_repo: AttendanceRepository,
    classrooms_repo: ClassroomRepository,
    identity: IdentityProvider,
    identity_timeout: float = DEFAULT_IDENTITY_TIMEOUT_SECONDS,
    broker: Optional[ClassroomBroker] = None,
    checkin_limiter: Optional[SlidingWindowRateLimiter] = None,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    broker = broker or ClassroomBroker()
    checkin_limiter = checkin_limiter or SlidingWindowRateLimiter()
    # One lock registry shared by every service touching a session.
    locks = KeyedLocks()

    statistics = StatisticsAggregator(attendance_repo, sessions_repo, locks=locks)
    sweeper = AbsentSweeper(attendance_repo, sessions_repo, classrooms_repo, locks=locks)
    evaluator = VerificationEvaluator(VerificationStrategyFactory(identity=identity, timeout=identity_timeout))

    session_service = SessionService(sessions_repo, sweeper, statistics, broker, locks=locks)
    attendance_service = AttendanceService(
        attendance_repo,
        sessions_repo,
        classrooms_repo,
        evaluator,
        statistics,
        broker,
        locks=locks,
    )

    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        attendance_repo=attendance_repo,
        classrooms_repo=classrooms_repo,
        identity=identity,
        broker=broker,
        checkin_limiter=checkin_limiter,
        statistics=statistics,
        session_service=session_service,
        attendance_service=attendance_service,
    )


def build_container(
    *,
    db_config: dict,
    otp_secret: str,
    otp_step_seconds: int = DEFAULT_OTP_STEP_SECONDS,
    identity_timeout: float = DEFAULT_IDENTITY_TIMEOUT_SECONDS,
    rate_limit: Optional[dict] = None,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_settings(db_config))

    rate_limit = rate_limit or {}
    return build_services(
        sessions_repo=MySQLSessionRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        classrooms_repo=MySQLClassroomRepository(conn),
        identity=HmacIdentityProvider(otp_secret, step_seconds=otp_step_seconds),
        identity_timeout=identity_timeout,
        checkin_limiter=SlidingWindowRateLimiter(**rate_limit),
        conn=conn,
    )
