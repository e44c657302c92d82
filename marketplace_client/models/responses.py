"""Generic API response envelope model.

Every backend response, successful or not, is normalized into this envelope:
{ success: bool, data: T | None, response: T | None, message: str | None,
  errors: dict | None, meta: PaginationMeta | None }

``data`` is the canonical payload field. ``response`` is a deprecated alias
some endpoints still use; read the payload through ``ApiResponse.payload``.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class PaginationLink(BaseModel):
    """A single page link from a paginated list response."""

    url: str | None = None
    label: str = ""
    active: bool = False


class PaginationMeta(BaseModel):
    """Pagination block attached to list responses."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    current_page: int = 1
    last_page: int = 1
    per_page: int = 0
    total: int = 0
    from_: int | None = Field(default=None, alias="from")
    to: int | None = None
    path: str | None = None
    links: list[PaginationLink] | None = None


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    data: T | None = None
    response: T | None = None  # Deprecated alias of ``data``
    message: str | None = None
    errors: dict[str, list[str]] | None = None
    meta: PaginationMeta | None = None

    @property
    def payload(self) -> T | None:
        """Return ``data``, falling back to the deprecated ``response`` field."""
        if self.data is not None:
            return self.data
        return self.response

    @classmethod
    def failure(
        cls,
        message: str,
        errors: dict[str, list[str]] | None = None,
    ) -> ApiResponse[Any]:
        """Build a failure envelope."""
        return cls(success=False, message=message, errors=errors)
