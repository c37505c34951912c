"""Unit tests for the closed error taxonomy."""

from __future__ import annotations

import logging

import pytest

from app.core.errors import DEFAULT_TAXONOMY
from app.core.errors import ClassifiedError
from app.core.errors import ErrorCode
from app.core.errors import ErrorTaxonomy
from app.core.errors import LogSeverity
from app.core.errors import TaxonomyEntry

EXPECTED = {
    ErrorCode.GENERIC_ERROR: (500, LogSeverity.ERROR),
    ErrorCode.BAD_REQUEST: (400, LogSeverity.WARN),
    ErrorCode.JSON_SYNTAX_ERROR: (400, LogSeverity.WARN),
    ErrorCode.JSON_TYPE_MISMATCH_ERROR: (400, LogSeverity.WARN),
    ErrorCode.JSON_UNKNOWN_FIELD_ERROR: (400, LogSeverity.WARN),
    ErrorCode.UNPROCESSABLE_ENTITY: (422, LogSeverity.WARN),
    ErrorCode.NOT_FOUND: (404, LogSeverity.INFO),
    ErrorCode.UNAUTHORIZED: (401, LogSeverity.WARN),
    ErrorCode.FORBIDDEN: (403, LogSeverity.WARN),
    ErrorCode.INTERNAL_SERVER_ERROR: (500, LogSeverity.ERROR),
    ErrorCode.DATABASE_ERROR: (500, LogSeverity.ERROR),
    ErrorCode.UNIQUE_KEY_VIOLATION: (409, LogSeverity.WARN),
    ErrorCode.SERVICE_UNAVAILABLE: (503, LogSeverity.ERROR),
    ErrorCode.DATABASE_INITIALIZE: (500, LogSeverity.FATAL),
    ErrorCode.ENVIRONMENT_VARIABLE_NOT_FOUND: (500, LogSeverity.ERROR),
    ErrorCode.VALIDATION_REGISTRATION_ERROR: (500, LogSeverity.FATAL),
}


def test_every_code_is_registered() -> None:
    assert len(DEFAULT_TAXONOMY) == len(ErrorCode)
    for code in ErrorCode:
        assert code in DEFAULT_TAXONOMY


@pytest.mark.parametrize(("code", "expected"), EXPECTED.items(), ids=lambda value: str(value))
def test_status_and_severity_match_table(code: ErrorCode, expected: tuple[int, LogSeverity]) -> None:
    entry = DEFAULT_TAXONOMY.entry(code)

    assert (entry.http_status, entry.log_severity) == expected
    assert entry.code == code.value
    assert entry.message


def test_new_error_carries_details_and_cause() -> None:
    cause = ValueError("boom")

    error = ErrorCode.UNAUTHORIZED.new_error(details="Invalid or expired token", cause=cause)

    assert isinstance(error, ClassifiedError)
    assert error.code == "UNAUTHORIZED"
    assert error.message == "Authentication failed."
    assert error.http_status == 401
    assert error.log_severity is LogSeverity.WARN
    assert error.details == "Invalid or expired token"
    assert error.cause is cause
    assert error.to_payload() == {
        "code": "UNAUTHORIZED",
        "message": "Authentication failed.",
        "details": "Invalid or expired token",
    }


def test_unknown_code_falls_back_to_generic_error() -> None:
    cause = KeyError("missing")

    error = DEFAULT_TAXONOMY.new_error("NOT_A_REAL_CODE", details={"hint": "x"}, cause=cause)

    assert error.code == "GENERIC_ERROR"
    assert error.http_status == 500
    assert error.log_severity is LogSeverity.ERROR
    assert error.details == {"hint": "x"}
    assert error.cause is cause


def test_payload_omits_absent_details() -> None:
    assert ErrorCode.NOT_FOUND.new_error().to_payload() == {
        "code": "NOT_FOUND",
        "message": "The requested resource could not be found.",
    }


def test_severity_maps_to_logging_levels() -> None:
    assert LogSeverity.WARN.level == logging.WARNING
    assert LogSeverity.FATAL.level == logging.CRITICAL


def test_taxonomy_rejects_unregistered_fallback() -> None:
    entry = TaxonomyEntry(code="ONLY", message="Only.", http_status=418, log_severity=LogSeverity.INFO)

    with pytest.raises(ValueError):
        ErrorTaxonomy({"ONLY": entry}, fallback_code="MISSING")


def test_taxonomy_is_read_only() -> None:
    with pytest.raises(TypeError):
        DEFAULT_TAXONOMY._entries["NEW"] = DEFAULT_TAXONOMY.fallback  # type: ignore[index]
