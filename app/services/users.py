"""Service helpers for user API operations."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ErrorCode
from app.core.passwords import PasswordHasher
from app.core.tokens import TokenService
from app.core.value_objects import DateOfBirth
from app.core.value_objects import Email
from app.core.value_objects import Name
from app.core.value_objects import Password
from app.core.value_objects import Username
from app.core.value_objects import ValueObjectError
from app.db.errors import translate_database_error
from app.db.models.user import User
from app.db.repository.users import count_users
from app.db.repository.users import create_user
from app.db.repository.users import delete_user
from app.db.repository.users import get_user
from app.db.repository.users import get_user_by_email
from app.db.repository.users import list_users
from app.db.repository.users import update_user
from app.schemas.error import ValidationErrorDetail
from app.schemas.user import LoginCommand
from app.schemas.user import UserCreateCommand
from app.schemas.user import UserUpdateCommand

ValueT = TypeVar("ValueT")

INVALID_CREDENTIALS = "Invalid credentials"


class _ValueCollector:
    """Builds value objects and keeps every rejection instead of stopping at the first."""

    def __init__(self) -> None:
        self.details: list[ValidationErrorDetail] = []

    def build(self, factory: Callable[..., ValueT], *args: Any) -> ValueT | None:
        try:
            return factory(*args)
        except ValueObjectError as exc:
            self.details.append(exc.detail)
            return None

    def raise_if_rejected(self) -> None:
        if self.details:
            raise ErrorCode.UNPROCESSABLE_ENTITY.new_error(details=self.details)


def _commit(session: Session, *, operation: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise translate_database_error(exc, operation=operation) from exc


def create_user_service(session: Session, command: UserCreateCommand, *, hasher: PasswordHasher) -> User:
    """Validate, hash and persist a new user."""
    values = _ValueCollector()
    username = values.build(Username, command.username)
    email = values.build(Email, command.email)
    password = values.build(Password, command.password)
    date_of_birth = values.build(DateOfBirth, command.date_of_birth)
    values.raise_if_rejected()

    password_hash = hasher.hash(password)
    try:
        user = create_user(
            session,
            username=username.value,
            email=email.value,
            password_hash=password_hash.value,
            date_of_birth=date_of_birth.value,
        )
    except SQLAlchemyError as exc:
        session.rollback()
        raise translate_database_error(exc, operation="create") from exc
    _commit(session, operation="create")
    return user


def get_user_service(session: Session, user_id: UUID) -> User:
    """Fetch a user or raise not found."""
    try:
        user = get_user(session, user_id)
    except SQLAlchemyError as exc:
        raise translate_database_error(exc, operation="get") from exc
    if user is None:
        raise ErrorCode.NOT_FOUND.new_error(details="User not found")
    return user


def list_users_service(session: Session, *, page: int, page_size: int) -> tuple[list[User], int]:
    """Return one page of users and the total count."""
    try:
        total = count_users(session)
        users = list_users(session, limit=page_size, offset=(page - 1) * page_size)
    except SQLAlchemyError as exc:
        raise translate_database_error(exc, operation="list") from exc
    return users, total


def _ensure_self(actor_id: UUID, user_id: UUID) -> None:
    if actor_id != user_id:
        raise ErrorCode.FORBIDDEN.new_error(details="Users can only modify their own account")


def update_user_service(
    session: Session,
    user_id: UUID,
    command: UserUpdateCommand,
    *,
    actor_id: UUID,
    hasher: PasswordHasher,
) -> User:
    """Apply a validated patch to the caller's own account."""
    _ensure_self(actor_id, user_id)
    if command.is_empty():
        raise ErrorCode.BAD_REQUEST.new_error(details="No fields to update")
    user = get_user_service(session, user_id)

    values = _ValueCollector()
    changes: dict[str, Any] = {}
    password = None
    if command.username is not None:
        changes["username"] = values.build(Username, command.username)
    if command.email is not None:
        changes["email"] = values.build(Email, command.email)
    if command.password is not None:
        password = values.build(Password, command.password)
    if command.date_of_birth is not None:
        changes["date_of_birth"] = values.build(DateOfBirth, command.date_of_birth)
    if command.first_name is not None:
        changes["first_name"] = values.build(Name, command.first_name, "firstName")
    if command.last_name is not None:
        changes["last_name"] = values.build(Name, command.last_name, "lastName")
    values.raise_if_rejected()

    columns: dict[str, Any] = {column: value.value for column, value in changes.items()}
    if password is not None:
        columns["password_hash"] = hasher.hash(password).value
    if command.location is not None:
        columns["location"] = command.location.strip()
    if command.bio is not None:
        columns["bio"] = command.bio.strip()

    try:
        user = update_user(session, user, changes=columns)
    except SQLAlchemyError as exc:
        session.rollback()
        raise translate_database_error(exc, operation="update") from exc
    _commit(session, operation="update")
    return user


def delete_user_service(session: Session, user_id: UUID, *, actor_id: UUID) -> None:
    """Delete the caller's own account."""
    _ensure_self(actor_id, user_id)
    user = get_user_service(session, user_id)
    try:
        delete_user(session, user)
    except SQLAlchemyError as exc:
        session.rollback()
        raise translate_database_error(exc, operation="delete") from exc
    _commit(session, operation="delete")


def login_service(
    session: Session,
    command: LoginCommand,
    *,
    hasher: PasswordHasher,
    tokens: TokenService,
) -> tuple[User, str]:
    """Check credentials and issue a bearer token.

    Unknown emails and wrong passwords are indistinguishable to the caller.
    """
    try:
        email = Email(command.email)
    except ValueObjectError as exc:
        raise ErrorCode.UNAUTHORIZED.new_error(details=INVALID_CREDENTIALS, cause=exc)

    try:
        user = get_user_by_email(session, email.value)
    except SQLAlchemyError as exc:
        raise translate_database_error(exc, operation="login") from exc
    if user is None or not hasher.verify(command.password, user.password_hash):
        raise ErrorCode.UNAUTHORIZED.new_error(details=INVALID_CREDENTIALS)

    token = tokens.issue(
        user.username,
        user.id,
        str(user.profile_picture_asset_id) if user.profile_picture_asset_id else None,
    )
    try:
        user = update_user(session, user, changes={"last_online": datetime.now(timezone.utc)})
    except SQLAlchemyError as exc:
        session.rollback()
        raise translate_database_error(exc, operation="login") from exc
    _commit(session, operation="login")
    return user, token
