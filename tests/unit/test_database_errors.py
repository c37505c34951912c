"""Unit tests for database failure translation."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import OperationalError

from app.core.errors import ClassifiedError
from app.core.passwords import PasswordHasher
from app.db.base import session_scope
from app.db.errors import translate_database_error
from app.db.repository.users import create_user
from app.schemas.user import UserCreateCommand
from app.services.users import create_user_service

BCRYPT_HASH = "$2b$04$" + "a" * 53
BIRTHDAY = datetime(1990, 5, 1, tzinfo=timezone.utc)


class _PsycopgLikeError(Exception):
    def __init__(self, message: str, sqlstate: str, constraint_name: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate
        self.diag = type("Diag", (), {"constraint_name": constraint_name})()


def _seed(session_factory, *, username: str, email: str) -> None:
    with session_scope(session_factory) as session:
        create_user(session, username=username, email=email, password_hash=BCRYPT_HASH, date_of_birth=BIRTHDAY)


def _flush_failure(session_factory, *, username: str, email: str) -> IntegrityError:
    session = session_factory()
    try:
        with pytest.raises(IntegrityError) as exc_info:
            create_user(session, username=username, email=email, password_hash=BCRYPT_HASH, date_of_birth=BIRTHDAY)
        session.rollback()
    finally:
        session.close()
    return exc_info.value


def test_sqlite_duplicate_email_names_email(session_factory) -> None:
    _seed(session_factory, username="john_doe", email="john@example.com")
    exc = _flush_failure(session_factory, username="other_user", email="john@example.com")

    error = translate_database_error(exc, operation="create")

    assert error.code == "UNIQUE_KEY_VIOLATION"
    assert error.http_status == 409
    assert error.details == "A user with the same email already exists"
    assert error.cause is exc


def test_sqlite_duplicate_username_names_username(session_factory) -> None:
    _seed(session_factory, username="john_doe", email="john@example.com")
    exc = _flush_failure(session_factory, username="john_doe", email="other@example.com")

    assert translate_database_error(exc, operation="create").details == "A user with the same username already exists"


def test_postgres_unique_violation_uses_constraint_name() -> None:
    orig = _PsycopgLikeError("duplicate key value", "23505", "uq_users_email")
    exc = IntegrityError("INSERT INTO users", {}, orig)

    error = translate_database_error(exc, operation="create")

    assert error.code == "UNIQUE_KEY_VIOLATION"
    assert error.details == "A user with the same email already exists"


def test_unrecognised_unique_constraint_gets_generic_details() -> None:
    orig = _PsycopgLikeError("duplicate key value", "23505", "uq_users_phone")
    exc = IntegrityError("INSERT INTO users", {}, orig)

    assert translate_database_error(exc, operation="create").details == "A user with similar details already exists"


def test_other_integrity_errors_are_database_errors() -> None:
    orig = _PsycopgLikeError("null value in column", "23502")
    exc = IntegrityError("INSERT INTO users", {}, orig)

    error = translate_database_error(exc, operation="create")

    assert error.code == "DATABASE_ERROR"
    assert error.http_status == 500


def test_operational_errors_are_database_errors() -> None:
    exc = OperationalError("SELECT 1", {}, Exception("connection refused"))

    error = translate_database_error(exc, operation="get")

    assert error.code == "DATABASE_ERROR"
    assert error.details == "Database get failed"


def test_service_rolls_back_and_keeps_session_usable(session_factory) -> None:
    _seed(session_factory, username="john_doe", email="john@example.com")
    hasher = PasswordHasher(rounds=4)
    command = UserCreateCommand(
        username="jane_doe",
        email="JOHN@example.com",
        password="Sup3r$ecretPassw0rd!",
        date_of_birth=BIRTHDAY,
    )

    session = session_factory()
    try:
        with pytest.raises(ClassifiedError) as exc_info:
            create_user_service(session, command, hasher=hasher)
        assert exc_info.value.code == "UNIQUE_KEY_VIOLATION"

        user = create_user_service(
            session,
            UserCreateCommand(
                username="jane_doe",
                email="jane@example.com",
                password="Sup3r$ecretPassw0rd!",
                date_of_birth=BIRTHDAY,
            ),
            hasher=hasher,
        )
        assert user.email == "jane@example.com"
    finally:
        session.close()
