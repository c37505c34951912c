"""Model module imports for SQLAlchemy metadata registration."""

from app.db.models.user import Base
from app.db.models.user import User

__all__ = [
    "Base",
    "User",
]
