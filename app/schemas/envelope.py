"""Uniform success/error response envelope returned by every endpoint."""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from datetime import datetime
from http import HTTPStatus
from typing import Any
from typing import Generic
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import PrivateAttr
from pydantic import model_validator

from app.core.errors import DEFAULT_TAXONOMY
from app.core.errors import ClassifiedError
from app.core.errors import LogSeverity
from app.schemas.error import ErrorObject

ItemT = TypeVar("ItemT")


def _status_text(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


class Pagination(BaseModel):
    """Pagination metadata for list responses."""

    model_config = ConfigDict(populate_by_name=True)

    total_items: int = Field(alias="totalItems")
    items_per_page: int | None = Field(default=None, alias="itemsPerPage")
    page_index: int | None = Field(default=None, alias="pageIndex")
    next_link: str | None = Field(default=None, alias="nextLink")
    previous_link: str | None = Field(default=None, alias="previousLink")


class ResponseData(BaseModel, Generic[ItemT]):
    """Data payload of a successful response."""

    items: list[ItemT] = Field(default_factory=list)
    deleted: bool | None = None
    updated: datetime | None = None
    pagination: Pagination | None = None


class ResponseEnvelope(BaseModel, Generic[ItemT]):
    """Envelope written to every caller.

    ``data`` and ``error`` are mutually exclusive. The HTTP status and any
    response headers travel out of band and are never serialized.
    """

    params: dict[str, Any] | None = None
    data: ResponseData[ItemT] | None = None
    error: ErrorObject | None = None
    message: str | None = None
    status_code: int = Field(default=200, exclude=True)
    headers: dict[str, str] = Field(default_factory=dict, exclude=True)

    _classified: ClassifiedError | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _data_and_error_are_exclusive(self) -> ResponseEnvelope[ItemT]:
        if self.data is not None and self.error is not None:
            raise ValueError("response envelope cannot carry both data and error")
        return self

    @classmethod
    def success(
        cls,
        items: Iterable[ItemT] = (),
        *,
        status_code: int = 200,
        message: str | None = None,
        params: Mapping[str, Any] | None = None,
        deleted: bool | None = None,
        updated: datetime | None = None,
        pagination: Pagination | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ResponseEnvelope[ItemT]:
        """Build a terminal success envelope."""
        return cls(
            params=dict(params) if params is not None else None,
            data={
                "items": list(items),
                "deleted": deleted,
                "updated": updated,
                "pagination": pagination,
            },
            message=message or _status_text(status_code),
            status_code=status_code,
            headers=dict(headers or {}),
        )

    @classmethod
    def failure(
        cls,
        error: ClassifiedError,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> ResponseEnvelope[ItemT]:
        """Build a terminal error envelope whose status comes from the taxonomy."""
        envelope = cls(
            params=dict(params) if params is not None else None,
            error=ErrorObject(**error.to_payload()),
            message=error.message,
            status_code=error.http_status,
        )
        envelope._classified = error
        return envelope

    @property
    def classified_error(self) -> ClassifiedError | None:
        return self._classified

    @property
    def is_terminal(self) -> bool:
        return (self.data is None) != (self.error is None)

    def error_severity(self) -> LogSeverity:
        """Return the log severity of the carried error."""
        if self._classified is not None:
            return self._classified.log_severity
        if self.error is not None:
            return DEFAULT_TAXONOMY.entry(self.error.code).log_severity
        return LogSeverity.INFO

    def render(self) -> dict[str, Any]:
        """Return the JSON body, omitting empty fields."""
        body = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if self.data is not None:
            # Items are always present in a data payload, even when empty.
            body["data"].setdefault("items", [])
        return body
