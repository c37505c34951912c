"""Exception handlers for failures raised before a dispatched handler runs.

Path and query validation, unknown routes, errors raised by dependencies
and stray exceptions are all rendered as the shared response envelope.
"""

from __future__ import annotations

from typing import Any
import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import ClassifiedError
from app.core.errors import ErrorCode
from app.core.logging import log_event
from app.schemas.envelope import ResponseEnvelope
from app.schemas.error import ValidationErrorDetail

logger = logging.getLogger(__name__)


def envelope_response(envelope: ResponseEnvelope[Any]) -> JSONResponse:
    """Render an envelope with its out-of-band status and headers."""
    return JSONResponse(
        status_code=envelope.status_code,
        content=envelope.render(),
        headers=envelope.headers or None,
    )


def _http_error_code(status_code: int) -> ErrorCode:
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorCode.NOT_FOUND
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return ErrorCode.UNAUTHORIZED
    if status_code == status.HTTP_403_FORBIDDEN:
        return ErrorCode.FORBIDDEN
    if status_code == status.HTTP_409_CONFLICT:
        return ErrorCode.UNIQUE_KEY_VIOLATION
    if status_code == 422:
        return ErrorCode.UNPROCESSABLE_ENTITY
    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        return ErrorCode.SERVICE_UNAVAILABLE
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return ErrorCode.INTERNAL_SERVER_ERROR
    return ErrorCode.BAD_REQUEST


def _format_location(location: tuple[Any, ...] | list[Any] | Any) -> str:
    if not isinstance(location, (tuple, list)):
        return str(location)

    prefixes = {"body", "query", "path", "header", "cookie"}
    filtered = [str(part) for part in location if part not in prefixes]
    if filtered:
        return ".".join(filtered)

    if not location:
        return "request"

    return str(location[0])


def _validation_details(exc: RequestValidationError) -> list[ValidationErrorDetail]:
    return [
        ValidationErrorDetail(
            field=_format_location(issue.get("loc", ())),
            rule=str(issue.get("type", "invalid")),
            message=str(issue.get("msg", "Invalid value")),
        )
        for issue in exc.errors()
    ]


def _log_error(request: Request, error: ClassifiedError, *, http_status: int) -> None:
    log_event(
        logger,
        error.log_severity.level,
        "Request failed before handler",
        component="framework",
        event="api_error_occurred",
        method=request.method,
        path=request.url.path,
        code=error.code,
        http_status=http_status,
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render path, query and header validation failures as ``BAD_REQUEST``."""
    error = ErrorCode.BAD_REQUEST.new_error(details=_validation_details(exc), cause=exc)
    _log_error(request, error, http_status=error.http_status)
    return envelope_response(ResponseEnvelope.failure(error))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors, keeping the framework's status code."""
    details = exc.detail if isinstance(exc.detail, str) and exc.detail else None
    error = _http_error_code(exc.status_code).new_error(details=details, cause=exc)
    _log_error(request, error, http_status=exc.status_code)

    envelope = ResponseEnvelope.failure(error)
    envelope.status_code = exc.status_code
    if exc.headers:
        envelope.headers.update(exc.headers)
    return envelope_response(envelope)


async def classified_error_handler(request: Request, exc: ClassifiedError) -> JSONResponse:
    """Render classified errors raised by dependencies."""
    _log_error(request, exc, http_status=exc.http_status)
    return envelope_response(ResponseEnvelope.failure(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Avoid leaking internal exceptions while keeping the envelope shape."""
    log_event(
        logger,
        logging.ERROR,
        "Unhandled exception",
        exc_info=True,
        component="framework",
        event="api_handler_failed",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    error = ErrorCode.INTERNAL_SERVER_ERROR.new_error(cause=exc)
    return envelope_response(ResponseEnvelope.failure(error))


def register_error_handlers(app: FastAPI) -> None:
    """Attach the envelope error handlers to a FastAPI app instance."""

    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(ClassifiedError, classified_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
