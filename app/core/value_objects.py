"""Self-validating domain value objects.

Each value object validates in its constructor and raises
``ValueObjectError`` on the first violated rule. Rules are checked in a
fixed order (presence, length bounds, then pattern or semantic checks), so
the reported rule is deterministic. An invalid instance cannot exist.
"""

from __future__ import annotations

from dataclasses import InitVar
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
import math
import re
import unicodedata

from app.schemas.error import ValidationErrorDetail

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
EMAIL_MAX_LENGTH = 254
NAME_MAX_LENGTH = 70
PASSWORD_MIN_LENGTH = 16
# Minimum length counts characters; the maximum counts UTF-8 bytes, the bcrypt input limit.
PASSWORD_MAX_BYTES = 72
PASSWORD_MIN_ENTROPY_BITS = 100.0
MIN_AGE_YEARS = 16
MAX_AGE_YEARS = 120

# Alphanumeric runs joined by a single "_" or "-"; no leading, trailing or doubled separator.
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9]+(?:[_-][A-Za-z0-9]+)*$")
# Dot-separated local atoms, so no leading, trailing or consecutive dots.
EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9_%+-]+(?:\.[A-Za-z0-9_%+-]+)*"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?\.)+[A-Za-z]{2,}$"
)
NAME_PATTERN = re.compile(r"^[A-Za-z](?:[A-Za-z'-]*[A-Za-z])?$")
BCRYPT_PATTERN = re.compile(r"^\$2[aby]\$\d{2}\$[./0-9A-Za-z]{53}$")

# Assumed alphabet size per detected character category.
LOWERCASE_POOL = 26
UPPERCASE_POOL = 26
DIGIT_POOL = 10
SYMBOL_POOL = 32


class ValueObjectError(ValueError):
    """Raised when a value object refuses its input."""

    def __init__(self, detail: ValidationErrorDetail) -> None:
        super().__init__(detail.message)
        self.detail = detail


def _reject(field_name: str, rule: str, message: str, param: str | None = None) -> ValueObjectError:
    return ValueObjectError(ValidationErrorDetail(field=field_name, rule=rule, param=param, message=message))


def character_pool_size(password: str) -> int:
    """Sum the assumed alphabet sizes of the character categories present."""
    has_lower = has_upper = has_digit = has_symbol = False
    for char in password:
        category = unicodedata.category(char)
        if category == "Ll":
            has_lower = True
        elif category == "Lu":
            has_upper = True
        elif category.startswith("N"):
            has_digit = True
        elif category[0] in ("P", "S"):
            has_symbol = True

    pool = 0
    if has_lower:
        pool += LOWERCASE_POOL
    if has_upper:
        pool += UPPERCASE_POOL
    if has_digit:
        pool += DIGIT_POOL
    if has_symbol:
        pool += SYMBOL_POOL
    return pool


def password_entropy(password: str) -> float:
    """Estimate entropy as ``length * log2(pool)`` under fixed alphabet sizes."""
    pool = character_pool_size(password)
    if pool == 0:
        return 0.0
    return len(password) * math.log2(pool)


def years_before(moment: datetime, years: int) -> datetime:
    """Shift a datetime back by whole calendar years, clamping Feb 29 to Feb 28."""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        return moment.replace(year=moment.year - years, day=28)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class Username:
    value: str

    def __post_init__(self) -> None:
        value = self.value
        if not value:
            raise _reject("username", "required", "Username is required.")
        if len(value) < USERNAME_MIN_LENGTH:
            raise _reject(
                "username", "min", "Username cannot be less than 3 characters.", str(USERNAME_MIN_LENGTH)
            )
        if len(value) > USERNAME_MAX_LENGTH:
            raise _reject("username", "max", "Username cannot exceed 30 characters.", str(USERNAME_MAX_LENGTH))
        if not USERNAME_PATTERN.match(value):
            raise _reject("username", "regex", "Invalid username format.")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Email:
    """Email address, stored trimmed and lowercased."""

    value: str

    def __post_init__(self) -> None:
        value = (self.value or "").strip().lower()
        if not value:
            raise _reject("email", "required", "Email is required.")
        if len(value) > EMAIL_MAX_LENGTH:
            raise _reject("email", "max", "Email cannot exceed 254 characters.", str(EMAIL_MAX_LENGTH))
        if not EMAIL_PATTERN.match(value):
            raise _reject("email", "regex", "Invalid email format.")
        object.__setattr__(self, "value", value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Password:
    """Plain-text password that passed the length and entropy policy.

    Leading and trailing whitespace is trimmed before validation. The upper
    bound is measured in UTF-8 bytes because bcrypt ignores anything past 72.
    """

    value: str = field(repr=False)

    def __post_init__(self) -> None:
        value = (self.value or "").strip()
        if not value:
            raise _reject("password", "required", "Password is required.")
        if len(value) < PASSWORD_MIN_LENGTH:
            raise _reject(
                "password", "min", "Password cannot be less than 16 characters.", str(PASSWORD_MIN_LENGTH)
            )
        if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise _reject("password", "max", "Password cannot exceed 72 characters.", str(PASSWORD_MAX_BYTES))

        if character_pool_size(value) == 0:
            raise _reject(
                "password",
                "charCategories",
                "Password must contain at least one recognized character category "
                "(lowercase, uppercase, number, or symbol).",
            )
        if password_entropy(value) < PASSWORD_MIN_ENTROPY_BITS:
            raise _reject(
                "password",
                "entropy",
                "Password must have a minimum entropy of 100 bits.",
                str(int(PASSWORD_MIN_ENTROPY_BITS)),
            )
        object.__setattr__(self, "value", value)

    def __str__(self) -> str:
        return "********"


@dataclass(frozen=True)
class PasswordHash:
    value: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.value:
            raise _reject("passwordHash", "required", "Password hash is required.")
        if not BCRYPT_PATTERN.match(self.value):
            raise _reject("passwordHash", "regex", "Invalid password hash format.")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Name:
    """First or last name."""

    value: str
    field_name: InitVar[str] = "name"

    def __post_init__(self, field_name: str) -> None:
        value = (self.value or "").strip()
        if not value:
            raise _reject(field_name, "required", "Name is required.")
        if len(value) > NAME_MAX_LENGTH:
            raise _reject(field_name, "max", "Name cannot exceed 70 characters.", str(NAME_MAX_LENGTH))
        if not NAME_PATTERN.match(value):
            raise _reject(field_name, "regex", "Invalid name format.")
        object.__setattr__(self, "value", value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DateOfBirth:
    """Birth date of someone older than 16 and younger than 120 years.

    Valid when ``now - 120y < value <= now - 16y``. ``now`` defaults to the
    current UTC time and is injectable for deterministic checks.
    """

    value: datetime
    now: InitVar[datetime | None] = None

    def __post_init__(self, now: datetime | None) -> None:
        if not isinstance(self.value, datetime):
            raise _reject("dateofbirth", "required", "Date of birth is required.")
        value = _as_utc(self.value)
        reference = _as_utc(now) if now is not None else datetime.now(timezone.utc)

        if value > reference:
            raise _reject("dateofbirth", "past", "Date of birth cannot be in the future.")
        if value <= years_before(reference, MAX_AGE_YEARS):
            raise _reject(
                "dateofbirth", "max", "Date of birth cannot be older than 120 years.", str(MAX_AGE_YEARS)
            )
        if value > years_before(reference, MIN_AGE_YEARS):
            raise _reject(
                "dateofbirth", "min", "Date of birth cannot be younger than 16 years.", str(MIN_AGE_YEARS)
            )
        object.__setattr__(self, "value", value)
