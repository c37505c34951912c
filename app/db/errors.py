"""Translate SQLAlchemy failures into classified errors."""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import ClassifiedError
from app.core.errors import ErrorCode
from app.core.logging import log_event

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"
SIMILAR_USER_DETAILS = "A user with similar details already exists"

CONSTRAINT_DETAILS = {
    "uq_users_email": "A user with the same email already exists",
    "uq_users_username": "A user with the same username already exists",
}

# SQLite reports the violated columns rather than the constraint name.
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (\w+)\.(\w+)")


def _sqlstate(orig: object) -> str | None:
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _constraint_name(exc: IntegrityError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint

    match = _SQLITE_UNIQUE.search(str(exc.orig))
    if match:
        table, column = match.groups()
        return f"uq_{table}_{column}"
    return None


def is_unique_violation(exc: SQLAlchemyError) -> bool:
    """Return True when the error is a unique-key violation on any backend."""
    if not isinstance(exc, IntegrityError):
        return False
    if _sqlstate(exc.orig) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    return _SQLITE_UNIQUE.search(str(exc.orig)) is not None


def translate_database_error(exc: SQLAlchemyError, *, operation: str) -> ClassifiedError:
    """Map a database failure onto the error taxonomy."""
    if is_unique_violation(exc):
        constraint = _constraint_name(exc)
        log_event(
            logger,
            logging.WARNING,
            "Unique key violation",
            component="database",
            event="unique_key_violation",
            operation=operation,
            constraint=constraint,
        )
        return ErrorCode.UNIQUE_KEY_VIOLATION.new_error(
            details=CONSTRAINT_DETAILS.get(constraint or "", SIMILAR_USER_DETAILS),
            cause=exc,
        )

    log_event(
        logger,
        logging.ERROR,
        "Database operation failed",
        component="database",
        event="database_error",
        operation=operation,
        error_type=type(exc).__name__,
    )
    return ErrorCode.DATABASE_ERROR.new_error(details=f"Database {operation} failed", cause=exc)
