"""Search criteria model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SearchCriteria(BaseModel):
    """Application-level search criteria.

    Exactly one of ``query_body`` (a pre-built OpenSearch query object) or a
    non-blank ``query`` string is required when the criteria are executed.
    """

    query: str | None = Field(default=None, description="Query string; 'field:pat*' runs a wildcard query")
    query_body: dict[str, Any] | None = Field(default=None, description="Pre-built OpenSearch query object")
    types: list[str] = Field(default_factory=list, description="Document type names to search")
    sorts: dict[str, bool] = Field(
        default_factory=dict,
        description="Sort fields in order; True sorts descending",
    )
    page: int | None = Field(default=None, ge=1, description="1-based page number; None means unpaged")
    page_size: int = Field(default=10, ge=1, description="Results per page")

    @property
    def paged(self) -> bool:
        return self.page is not None

    @property
    def offset(self) -> int:
        return ((self.page or 1) - 1) * self.page_size

    def add_sort(self, field: str, descending: bool = False) -> SearchCriteria:
        self.sorts[field] = descending
        return self
