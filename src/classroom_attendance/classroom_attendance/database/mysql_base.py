from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import TransientError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# Errors after which retrying the whole operation is safe.
_TRANSIENT_ERRORS = (
    mysql.connector.errors.InterfaceError,
    mysql.connector.errors.OperationalError,
    mysql.connector.errors.PoolError,
)


def is_duplicate_key(exc: mysql.connector.Error) -> bool:
    return getattr(exc, "errno", None) == errorcode.ER_DUP_ENTRY


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Yield (conn, cursor) inside one transaction.

    Commits on success, rolls back on any exception, so a failed write never
    leaves a half-committed row. Connection-level failures surface as TransientError.
    """
    try:
        conn = conn_factory.connect()
    except _TRANSIENT_ERRORS as exc:
        logger.warning("Database connection failed: %s", exc)
        raise TransientError("Database is unavailable, please retry") from exc

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except _TRANSIENT_ERRORS as exc:
        _safe_rollback(conn)
        logger.warning("Database operation failed: %s", exc)
        raise TransientError("Database operation timed out, please retry") from exc
    except Exception:
        _safe_rollback(conn)
        raise
    finally:
        conn.close()


def _safe_rollback(conn) -> None:
    try:
        conn.rollback()
    except mysql.connector.Error:
        logger.warning("Rollback failed on a broken connection", exc_info=True)


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
