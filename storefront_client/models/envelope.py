"""Generic API response envelope model.

Every storefront endpoint wraps its payload in this envelope:
{ success, message, data?, errors?, meta?, timestamp }
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class FieldError(BaseModel):
    """Field-level validation failure reported by the backend."""

    field: str
    message: str
    code: str | None = None
    value: Any = None


class PaginationMeta(BaseModel):
    """Paginated-list metadata found under ``meta.pagination``."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(alias="currentPage")
    total_pages: int = Field(alias="totalPages")
    total_items: int = Field(alias="totalItems")
    items_per_page: int = Field(alias="itemsPerPage")
    has_next_page: bool = Field(alias="hasNextPage")
    has_prev_page: bool = Field(alias="hasPrevPage")
    next_page: int | None = Field(default=None, alias="nextPage")
    prev_page: int | None = Field(default=None, alias="prevPage")


class ResponseMeta(BaseModel):
    """Envelope metadata. Unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    pagination: PaginationMeta | None = None
    total: int | None = None
    page: int | None = None
    limit: int | None = None
    has_next: bool | None = Field(default=None, alias="hasNext")
    has_prev: bool | None = Field(default=None, alias="hasPrev")
    version: str | None = None


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    success: bool
    message: str
    data: T | None = None
    errors: list[FieldError] | None = None
    meta: ResponseMeta | None = None
    timestamp: str
