"""Error payload schemas shared across API handlers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict


class ValidationErrorDetail(BaseModel):
    """Single failed field-level rule."""

    model_config = ConfigDict(frozen=True)

    field: str
    rule: str
    param: str | None = None
    message: str


class ErrorObject(BaseModel):
    """Canonical error payload object."""

    code: str
    message: str
    details: Any = None
