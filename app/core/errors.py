"""Closed error taxonomy: codes, default messages, HTTP statuses and log severities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any
import logging


class LogSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def level(self) -> int:
        """Return the stdlib logging level for this severity."""
        return _SEVERITY_LEVELS[self]


_SEVERITY_LEVELS = {
    LogSeverity.DEBUG: logging.DEBUG,
    LogSeverity.INFO: logging.INFO,
    LogSeverity.WARN: logging.WARNING,
    LogSeverity.ERROR: logging.ERROR,
    LogSeverity.FATAL: logging.CRITICAL,
}


class ErrorCode(str, Enum):
    """Symbolic codes of every failure the API can report."""

    GENERIC_ERROR = "GENERIC_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    JSON_SYNTAX_ERROR = "JSON_SYNTAX_ERROR"
    JSON_TYPE_MISMATCH_ERROR = "JSON_TYPE_MISMATCH_ERROR"
    JSON_UNKNOWN_FIELD_ERROR = "JSON_UNKNOWN_FIELD_ERROR"
    UNPROCESSABLE_ENTITY = "UNPROCESSABLE_ENTITY"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    UNIQUE_KEY_VIOLATION = "UNIQUE_KEY_VIOLATION"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    DATABASE_INITIALIZE = "DATABASE_INITIALIZE"
    ENVIRONMENT_VARIABLE_NOT_FOUND = "ENVIRONMENT_VARIABLE_NOT_FOUND"
    VALIDATION_REGISTRATION_ERROR = "VALIDATION_REGISTRATION_ERROR"

    def new_error(self, details: Any = None, cause: BaseException | None = None) -> ClassifiedError:
        """Create a classified error for this code from the default taxonomy."""
        return DEFAULT_TAXONOMY.new_error(self, details=details, cause=cause)


@dataclass(frozen=True)
class TaxonomyEntry:
    """Fixed message, HTTP status and log severity of one error code."""

    code: str
    message: str
    http_status: int
    log_severity: LogSeverity


class ClassifiedError(Exception):
    """Error instance built strictly through the taxonomy.

    Instances are created at the point of failure and propagated unchanged
    until the dispatch wrapper (or a framework error handler) renders them.
    """

    def __init__(self, entry: TaxonomyEntry, *, details: Any = None, cause: BaseException | None = None) -> None:
        super().__init__(entry.message)
        self.code = entry.code
        self.message = entry.message
        self.http_status = entry.http_status
        self.log_severity = entry.log_severity
        self.details = details
        self.cause = cause

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation used inside the response envelope."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"ClassifiedError(code={self.code!r}, http_status={self.http_status})"


class ErrorTaxonomy:
    """Immutable registry of taxonomy entries keyed by code."""

    def __init__(self, entries: Mapping[str, TaxonomyEntry], *, fallback_code: str) -> None:
        if fallback_code not in entries:
            raise ValueError(f"fallback code {fallback_code!r} is not registered")
        self._entries = MappingProxyType(dict(entries))
        self._fallback = self._entries[fallback_code]

    @property
    def fallback(self) -> TaxonomyEntry:
        return self._fallback

    def __contains__(self, code: object) -> bool:
        return _code_key(code) in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, code: str | ErrorCode) -> TaxonomyEntry:
        """Return the entry for a code, or the fallback entry when unregistered."""
        return self._entries.get(_code_key(code), self._fallback)

    def new_error(
        self,
        code: str | ErrorCode,
        *,
        details: Any = None,
        cause: BaseException | None = None,
    ) -> ClassifiedError:
        """Create a classified error, degrading unknown codes to the fallback entry."""
        return ClassifiedError(self.entry(code), details=details, cause=cause)


def _code_key(code: object) -> str:
    return code.value if isinstance(code, ErrorCode) else str(code)


def _entry(code: ErrorCode, message: str, http_status: int, log_severity: LogSeverity) -> TaxonomyEntry:
    return TaxonomyEntry(code=code.value, message=message, http_status=http_status, log_severity=log_severity)


DEFAULT_TAXONOMY = ErrorTaxonomy(
    {
        entry.code: entry
        for entry in (
            _entry(ErrorCode.GENERIC_ERROR, "An unexpected error occurred.", 500, LogSeverity.ERROR),
            _entry(ErrorCode.BAD_REQUEST, "The request was invalid or malformed.", 400, LogSeverity.WARN),
            _entry(
                ErrorCode.JSON_SYNTAX_ERROR,
                "The request body contains malformed JSON or invalid JSON syntax.",
                400,
                LogSeverity.WARN,
            ),
            _entry(
                ErrorCode.JSON_TYPE_MISMATCH_ERROR,
                "The request body contains a field with an unexpected type.",
                400,
                LogSeverity.WARN,
            ),
            _entry(
                ErrorCode.JSON_UNKNOWN_FIELD_ERROR,
                "The request body contains an unknown field.",
                400,
                LogSeverity.WARN,
            ),
            _entry(
                ErrorCode.UNPROCESSABLE_ENTITY,
                "One or more input values are invalid.",
                422,
                LogSeverity.WARN,
            ),
            _entry(ErrorCode.NOT_FOUND, "The requested resource could not be found.", 404, LogSeverity.INFO),
            _entry(ErrorCode.UNAUTHORIZED, "Authentication failed.", 401, LogSeverity.WARN),
            _entry(
                ErrorCode.FORBIDDEN,
                "You do not have permission to perform this action.",
                403,
                LogSeverity.WARN,
            ),
            _entry(ErrorCode.INTERNAL_SERVER_ERROR, "An internal server error occurred.", 500, LogSeverity.ERROR),
            _entry(ErrorCode.DATABASE_ERROR, "A database operation failed.", 500, LogSeverity.ERROR),
            _entry(ErrorCode.UNIQUE_KEY_VIOLATION, "A unique key violation occurred.", 409, LogSeverity.WARN),
            _entry(
                ErrorCode.SERVICE_UNAVAILABLE,
                "The service is temporarily unavailable.",
                503,
                LogSeverity.ERROR,
            ),
            _entry(ErrorCode.DATABASE_INITIALIZE, "Database initialization failed.", 500, LogSeverity.FATAL),
            _entry(
                ErrorCode.ENVIRONMENT_VARIABLE_NOT_FOUND,
                "Environment variable not found.",
                500,
                LogSeverity.ERROR,
            ),
            _entry(
                ErrorCode.VALIDATION_REGISTRATION_ERROR,
                "The validator domain specific registration failed.",
                500,
                LogSeverity.FATAL,
            ),
        )
    },
    fallback_code=ErrorCode.GENERIC_ERROR.value,
)

