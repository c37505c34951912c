"""bcrypt password hashing."""

from __future__ import annotations

import bcrypt

from app.core.value_objects import Password
from app.core.value_objects import PasswordHash


class PasswordHasher:
    """Hash and verify passwords with a fixed bcrypt cost."""

    def __init__(self, *, rounds: int = 14) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("rounds must be between 4 and 31")
        self._rounds = rounds

    def hash(self, password: Password) -> PasswordHash:
        """Return the bcrypt hash of a policy-checked password."""
        hashed = bcrypt.hashpw(password.value.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        return PasswordHash(hashed.decode("ascii"))

    def verify(self, plain: str, password_hash: str) -> bool:
        """Return True when ``plain`` matches ``password_hash``."""
        if not plain or not password_hash:
            return False
        try:
            return bcrypt.checkpw(plain.strip().encode("utf-8"), password_hash.encode("ascii"))
        except ValueError:
            # Malformed stored hash or over-long input.
            return False
