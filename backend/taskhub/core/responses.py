"""Uniform response envelope: ``{success, data, error, meta?}``."""

from typing import Any, Generic, TypeVar

from fastapi.responses import ORJSONResponse
from pydantic import BaseModel

T = TypeVar("T")


class PageMeta(BaseModel):
    """Pagination metadata."""

    page: int
    limit: int
    total: int


class Envelope(BaseModel, Generic[T]):
    """Schema for every API response body."""

    success: bool = True
    data: T | None = None
    error: str | None = None
    meta: PageMeta | None = None


def ok(data: Any = None, meta: PageMeta | None = None) -> dict:
    """Successful envelope. ``meta`` is omitted when not paginated."""
    body: dict[str, Any] = {"success": True, "data": data, "error": None}
    if meta is not None:
        body["meta"] = meta
    return body


def error_response(status_code: int, message: str) -> ORJSONResponse:
    """Failure envelope with the given HTTP status."""
    return ORJSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "error": message},
    )
