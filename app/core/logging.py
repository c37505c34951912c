"""Logging configuration and structured event helper.

Events are plain stdlib log records. The structured fields are rendered as
``key=value`` pairs in the message and attached to the record as extras, so
JSON sinks can read them without parsing text. Never pass secrets or raw
request bodies as fields.
"""

from __future__ import annotations

from typing import Any
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Configure process-wide logging output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _render_fields(fields: dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """Emit one structured log line."""
    if not logger.isEnabledFor(level):
        return
    logger.log(level, "%s %s", message, _render_fields(fields), extra=fields, exc_info=exc_info)
