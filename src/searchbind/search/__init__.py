"""Search layer — Criteria translation and result decoding."""

from searchbind.search.service import SearchService
from searchbind.search.translator import EngineRequest, QueryTranslator, is_wildcard_query

__all__ = ["EngineRequest", "QueryTranslator", "SearchService", "is_wildcard_query"]
