"""Search service — Execute translated searches and decode the hits into entities."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from opensearchpy import AsyncOpenSearch
from opensearchpy.exceptions import OpenSearchException
from pydantic import ValidationError

from searchbind.exceptions import UnknownDocumentTypeError
from searchbind.index.codec import DocumentCodec
from searchbind.models.criteria import SearchCriteria
from searchbind.models.result import ResultPage
from searchbind.search.translator import QueryTranslator

logger = logging.getLogger(__name__)

Mapper = Callable[[Any], Any]


class SearchService:
    """Runs searches built by the :class:`QueryTranslator`.

    Invalid criteria always raise. Cluster failures are logged and produce
    empty results; a hit that cannot be decoded is logged and skipped.
    """

    def __init__(self, client: AsyncOpenSearch, codec: DocumentCodec, translator: QueryTranslator) -> None:
        self._client = client
        self._codec = codec
        self._translator = translator

    async def search(
        self,
        criteria: SearchCriteria,
        mapper: Mapper | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        """Return the entities matching ``criteria``.

        Args:
            criteria: The search criteria.
            mapper: Optional function applied to every entity; ``None`` results are dropped.
            limit: Result cap for unpaged criteria.
        """
        request = self._translator.build(criteria, limit=limit)
        try:
            response = await self._client.search(index=request.index, body=request.body)
        except OpenSearchException:
            logger.error("Search failed for %s", request.body.get("query"), exc_info=True)
            return []
        return self._decode_hits(response, mapper)

    async def search_page(self, criteria: SearchCriteria, mapper: Mapper | None = None) -> ResultPage:
        """Return one page of results, with the total hit count and timing."""
        page = ResultPage(criteria=criteria)
        request = self._translator.build(criteria)
        try:
            response = await self._client.search(index=request.index, body=request.body)
        except OpenSearchException:
            logger.error("Search failed for %s", request.body.get("query"), exc_info=True)
            return page
        total = response.get("hits", {}).get("total", 0)
        page.total_results = total.get("value", 0) if isinstance(total, dict) else int(total)
        page.took_ms = response.get("took", 0)
        page.results = self._decode_hits(response, mapper)
        return page

    async def count_terms_by_field(self, criteria: SearchCriteria, field: str) -> dict[str, int]:
        """Count matching documents per distinct value of ``field``, in bucket order."""
        request = self._translator.build_terms_count(criteria, field)
        try:
            response = await self._client.search(index=request.index, body=request.body)
        except OpenSearchException:
            logger.error("Terms aggregation on %s failed", field, exc_info=True)
            return {}
        buckets = response.get("aggregations", {}).get(field, {}).get("buckets", [])
        return {str(bucket["key"]): int(bucket["doc_count"]) for bucket in buckets}

    def _decode_hits(self, response: dict[str, Any], mapper: Mapper | None) -> list[Any]:
        results: list[Any] = []
        for hit in response.get("hits", {}).get("hits", []):
            try:
                entity = self._codec.decode(hit)
            except (UnknownDocumentTypeError, ValidationError):
                logger.error("Cannot decode hit %s/%s", hit.get("_index"), hit.get("_id"), exc_info=True)
                continue
            data = entity if mapper is None else mapper(entity)
            if data is not None:
                results.append(data)
        return results
