"""Query translator — Turn search criteria into OpenSearch search requests."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

from searchbind.exceptions import InvalidCriteriaError
from searchbind.index.registry import TypeRegistry
from searchbind.models.criteria import SearchCriteria

WILDCARD_QUERY_PATTERN = re.compile(r"\w+:.*[?*].*")

DEFAULT_TIMEOUT = "10s"
DEFAULT_MAX_PAGE_SIZE = 1000


class EngineRequest(BaseModel):
    """An OpenSearch search request: target indices plus request body."""

    indices: list[str] = Field(default_factory=list, description="Target indices; empty means all")
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def index(self) -> str | None:
        """Value for the ``index`` argument of ``AsyncOpenSearch.search``."""
        return ",".join(self.indices) or None


def is_wildcard_query(query: str) -> bool:
    """Whether ``query`` has the form ``field:pattern`` with a literal ``?`` or ``*``."""
    return WILDCARD_QUERY_PATTERN.fullmatch(query) is not None


def parse_wildcard_query(query: str) -> tuple[str, str] | None:
    """Split a wildcard query into ``(field, pattern)`` on the first colon."""
    if not is_wildcard_query(query):
        return None
    field, pattern = query.split(":", 1)
    return field, pattern


class QueryTranslator:
    """Builds OpenSearch requests from :class:`SearchCriteria`.

    Free-text queries combine terms with AND. Unpaged requests are capped at
    ``max_page_size`` results.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        timeout: str = DEFAULT_TIMEOUT,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ) -> None:
        self._registry = registry
        self._timeout = timeout
        self.max_page_size = max_page_size

    def build_query(self, criteria: SearchCriteria) -> dict[str, Any]:
        """The query clause of ``criteria``.

        Raises:
            InvalidCriteriaError: If the criteria carry neither a query object
                nor a non-blank query string.
        """
        if criteria.query_body is not None:
            return criteria.query_body
        query = (criteria.query or "").strip()
        if not query:
            raise InvalidCriteriaError("query_body is None and query is blank")
        wildcard = parse_wildcard_query(query)
        if wildcard is not None:
            field, pattern = wildcard
            return {"wildcard": {field: {"value": pattern}}}
        return {"query_string": {"query": query, "default_operator": "AND"}}

    def build(self, criteria: SearchCriteria, limit: int | None = None) -> EngineRequest:
        """Build the search request for ``criteria``.

        Args:
            criteria: The search criteria.
            limit: Result cap for unpaged criteria; ignored unless smaller
                than ``max_page_size``.
        """
        body: dict[str, Any] = {"query": self.build_query(criteria), "timeout": self._timeout}
        if criteria.paged:
            body["from"] = criteria.offset
            body["size"] = criteria.page_size
        else:
            body["from"] = 0
            body["size"] = limit if limit is not None and 0 < limit < self.max_page_size else self.max_page_size
        if criteria.sorts:
            body["sort"] = [
                {field: {"order": "desc" if descending else "asc"}} for field, descending in criteria.sorts.items()
            ]
        indices = [self._registry.index_name_for(type_name) for type_name in criteria.types]
        return EngineRequest(indices=indices, body=body)

    def build_terms_count(self, criteria: SearchCriteria, field: str) -> EngineRequest:
        """Build a request counting documents per distinct value of ``field``."""
        request = self.build(criteria)
        request.body.pop("sort", None)
        request.body["from"] = 0
        request.body["size"] = 0
        request.body["aggs"] = {field: {"terms": {"field": field}}}
        return request
