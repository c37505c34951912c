"""Database engine and session helpers for BlueFox."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker


def create_session_factory(database_url: str, **engine_options: Any) -> sessionmaker[Session]:
    """Build the engine and session factory for a database URL."""
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        **engine_options,
    )
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        class_=Session,
    )


def get_db_session(request: Request) -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    session = request.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a transactional session scope for scripts/tests."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
