"""Repository primitives for user entities."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models.user import User


def create_user(
    session: Session,
    *,
    username: str,
    email: str,
    password_hash: str,
    date_of_birth: datetime,
) -> User:
    """Create and return a user row."""
    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        date_of_birth=date_of_birth,
    )
    session.add(user)
    session.flush()
    session.refresh(user)
    return user


def get_user(session: Session, user_id: UUID) -> User | None:
    """Fetch a user by id."""
    return session.get(User, user_id)


def get_user_by_email(session: Session, email: str) -> User | None:
    """Fetch a user by normalized email."""
    return session.scalar(select(User).where(User.email == email))


def list_users(session: Session, *, limit: int = 20, offset: int = 0) -> list[User]:
    """List users, oldest accounts first."""
    stmt = select(User).order_by(User.created_at.asc(), User.id.asc()).limit(limit).offset(offset)
    return list(session.scalars(stmt))


def count_users(session: Session) -> int:
    """Count all users."""
    return session.scalar(select(func.count()).select_from(User)) or 0


def update_user(session: Session, user: User, *, changes: Mapping[str, Any]) -> User:
    """Apply column changes to a user."""
    for column, value in changes.items():
        setattr(user, column, value)
    session.flush()
    session.refresh(user)
    return user


def delete_user(session: Session, user: User) -> None:
    """Hard-delete a user."""
    session.delete(user)
    session.flush()
