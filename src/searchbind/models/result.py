"""Search result page model."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field

from searchbind.models.criteria import SearchCriteria


class ResultPage(BaseModel):
    """One page of decoded search results."""

    criteria: SearchCriteria
    total_results: int = Field(default=0, description="Total number of matching documents")
    took_ms: int = Field(default=0, description="Engine execution time in ms")
    results: list[Any] = Field(default_factory=list, description="Decoded (and mapped) entities")

    @property
    def page(self) -> int:
        return self.criteria.page or 1

    @property
    def page_size(self) -> int:
        return self.criteria.page_size

    @property
    def total_pages(self) -> int:
        if not self.criteria.paged:
            return 1
        return max(1, math.ceil(self.total_results / self.page_size))
