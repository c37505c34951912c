"""Dispatch wrapper that turns an envelope-returning handler into an endpoint.

Handlers never see the response. They return a ``ResponseEnvelope`` or
raise ``ClassifiedError``; the wrapper writes exactly one response and one
outcome log line, correlated by request id.
"""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any
from typing import get_type_hints
from uuid import uuid4
import asyncio
import functools
import inspect
import logging
import time

from fastapi import Request
from fastapi import Response
from starlette.types import Receive
from starlette.types import Scope
from starlette.types import Send

from app.api.error_handlers import envelope_response
from app.core.config import DEFAULT_TRACE_HEADER
from app.core.errors import ClassifiedError
from app.core.errors import ErrorCode
from app.core.logging import log_event
from app.schemas.envelope import ResponseEnvelope

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable["ResponseEnvelope[Any] | None"]]

CLIENT_CLOSED_REQUEST = 499


class AbortedResponse(Response):
    """Response that writes nothing to a client that is already gone."""

    def __init__(self) -> None:
        super().__init__(status_code=CLIENT_CLOSED_REQUEST)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        return None


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _internal_failure(details: str, cause: BaseException | None = None) -> ResponseEnvelope[Any]:
    return ResponseEnvelope.failure(ErrorCode.INTERNAL_SERVER_ERROR.new_error(details=details, cause=cause))


class HandlerTimeoutError(RuntimeError):
    """A timeout raised inside the handler, as opposed to the request deadline."""


async def _run_handler(handler: Handler, kwargs: dict[str, Any]) -> Any:
    try:
        return await handler(**kwargs)
    except asyncio.TimeoutError as exc:
        raise HandlerTimeoutError(str(exc) or "Handler timed out") from exc


async def _invoke(handler: Handler, kwargs: dict[str, Any], timeout: float | None) -> Any:
    # Only the deadline below may surface as TimeoutError.
    if timeout is None:
        return await _run_handler(handler, kwargs)
    return await asyncio.wait_for(_run_handler(handler, kwargs), timeout)


def dispatch(component: str) -> Callable[[Handler], Callable[..., Awaitable[Response]]]:
    """Wrap an async handler taking ``request: Request`` plus FastAPI dependencies."""

    def decorator(handler: Handler) -> Callable[..., Awaitable[Response]]:
        signature = inspect.signature(handler)
        if "request" not in signature.parameters:
            raise TypeError(f"{handler.__qualname__} must accept a 'request' parameter")

        hints = get_type_hints(handler, include_extras=True)
        parameters = [
            parameter.replace(annotation=hints.get(name, parameter.annotation))
            for name, parameter in signature.parameters.items()
        ]

        @functools.wraps(handler)
        async def endpoint(**kwargs: Any) -> Response:
            request: Request = kwargs["request"]
            settings = getattr(request.app.state, "settings", None)
            trace_header = settings.trace_header if settings is not None else DEFAULT_TRACE_HEADER
            timeout = settings.request_timeout_seconds if settings is not None else None
            correlation_id = request.headers.get(trace_header) or str(uuid4())
            context = {
                "component": component,
                "handler": handler.__name__,
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
            }
            started = time.perf_counter()

            try:
                outcome = await _invoke(handler, kwargs, timeout)
            except ClassifiedError as exc:
                envelope = ResponseEnvelope.failure(exc)
            except asyncio.TimeoutError:
                log_event(
                    logger,
                    logging.WARNING,
                    "Request deadline exceeded",
                    event="request_deadline_exceeded",
                    duration_ms=_elapsed_ms(started),
                    **context,
                )
                return AbortedResponse()
            except asyncio.CancelledError:
                log_event(
                    logger,
                    logging.WARNING,
                    "Request cancelled",
                    event="request_cancelled",
                    duration_ms=_elapsed_ms(started),
                    **context,
                )
                raise
            except Exception as exc:
                log_event(
                    logger,
                    logging.ERROR,
                    "Handler raised an unexpected exception",
                    exc_info=True,
                    event="api_handler_failed",
                    error_type=type(exc).__name__,
                    **context,
                )
                envelope = _internal_failure("Handler raised an unexpected exception", exc)
            else:
                if isinstance(outcome, ResponseEnvelope) and outcome.is_terminal:
                    envelope = outcome
                else:
                    log_event(
                        logger,
                        logging.ERROR,
                        "Handler returned no terminal response",
                        event="api_handler_failed",
                        **context,
                    )
                    envelope = _internal_failure("Handler returned no response")

            if await request.is_disconnected():
                log_event(
                    logger,
                    logging.INFO,
                    "Client disconnected before response",
                    event="request_cancelled",
                    duration_ms=_elapsed_ms(started),
                    **context,
                )
                return AbortedResponse()

            if envelope.error is not None:
                log_event(
                    logger,
                    envelope.error_severity().level,
                    "Request failed",
                    event="api_error_occurred",
                    code=envelope.error.code,
                    http_status=envelope.status_code,
                    duration_ms=_elapsed_ms(started),
                    **context,
                )
            else:
                log_event(
                    logger,
                    logging.INFO,
                    "Request handled",
                    event="api_handler_success",
                    http_status=envelope.status_code,
                    duration_ms=_elapsed_ms(started),
                    **context,
                )

            response = envelope_response(envelope)
            response.headers[trace_header] = correlation_id
            return response

        endpoint.__signature__ = signature.replace(parameters=parameters, return_annotation=Response)
        return endpoint

    return decorator
