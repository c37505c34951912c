"""Shared pytest fixtures for BlueFox test suites."""

from collections.abc import Generator
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_JWT_SECRET = "test-secret-key-with-at-least-32-bytes!"


@pytest.fixture
def settings():
    """Settings with a signing secret and the cheapest bcrypt cost."""
    from app.core.config import AppSettings

    return AppSettings(
        database_url="sqlite://",
        jwt_secret_key=TEST_JWT_SECRET,
        password_hash_rounds=4,
    )


@pytest.fixture
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    """Provide an in-memory SQLite session factory with the schema created."""
    from app.db.base import create_session_factory
    from app.db.models import Base

    factory = create_session_factory(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    engine = factory.kw["bind"]
    Base.metadata.create_all(engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def app(settings, session_factory):
    from app.main import create_app

    return create_app(settings, session_factory=session_factory)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Provide an API test client for contract suites."""
    with TestClient(app) as test_client:
        yield test_client

