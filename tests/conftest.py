"""Shared test fixtures and configuration."""

from __future__ import annotations

import fnmatch
from collections import Counter
from typing import Any

import pytest
from opensearchpy.exceptions import NotFoundError, RequestError

from sample_entities.catalog import Address, Article, Author, BlogPost, Status
from searchbind.backends.locks import LocalLockService
from searchbind.backends.store import InMemoryStore
from searchbind.config.settings import Settings
from searchbind.index.codec import DocumentCodec
from searchbind.index.registry import TypeRegistry

# ── Fake cluster ─────────────────────────────────────────────────────────────


def _flatten(value: Any) -> list[str]:
    if isinstance(value, dict):
        return [text for item in value.values() for text in _flatten(item)]
    if isinstance(value, list):
        return [text for item in value for text in _flatten(item)]
    return [str(value).lower()]


def _matches(query: dict[str, Any], source: dict[str, Any]) -> bool:
    if "match_all" in query:
        return True
    if "wildcard" in query:
        field, spec = next(iter(query["wildcard"].items()))
        value = source.get(field)
        return value is not None and fnmatch.fnmatchcase(str(value), spec["value"])
    if "query_string" in query:
        haystack = " ".join(_flatten(source))
        return all(term in haystack for term in query["query_string"]["query"].lower().split())
    if "term" in query:
        field, value = next(iter(query["term"].items()))
        return source.get(field) == value
    return False


class FakeIndices:
    def __init__(self, cluster: FakeOpenSearch) -> None:
        self._cluster = cluster

    async def exists(self, index: str) -> bool:
        return index in self._cluster.data

    async def create(self, index: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        if index in self._cluster.data:
            raise RequestError(400, "resource_already_exists_exception", {"index": index})
        self._cluster.data[index] = {}
        self._cluster.settings[index] = (body or {}).get("settings", {})
        return {"acknowledged": True, "index": index}

    async def put_mapping(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        if index not in self._cluster.data:
            raise NotFoundError(404, "index_not_found_exception", {"index": index})
        self._cluster.mappings[index] = body
        return {"acknowledged": True}

    async def delete(self, index: str) -> dict[str, Any]:
        if index not in self._cluster.data:
            raise NotFoundError(404, "index_not_found_exception", {"index": index})
        del self._cluster.data[index]
        self._cluster.mappings.pop(index, None)
        self._cluster.dropped.append(index)
        return {"acknowledged": True}


class FakeCluster:
    async def health(self) -> dict[str, Any]:
        return {"status": "green", "cluster_name": "fake", "number_of_nodes": 1}


class FakeOpenSearch:
    """In-memory stand-in for ``AsyncOpenSearch`` covering the calls searchbind makes."""

    def __init__(self) -> None:
        self.data: dict[str, dict[str, dict[str, Any]]] = {}
        self.settings: dict[str, dict[str, Any]] = {}
        self.mappings: dict[str, dict[str, Any]] = {}
        self.dropped: list[str] = []
        self.searches: list[dict[str, Any]] = []
        self.bulk_calls = 0
        self.closed = False
        self.indices = FakeIndices(self)
        self.cluster = FakeCluster()

    async def info(self) -> dict[str, Any]:
        return {"cluster_name": "fake", "version": {"number": "2.11.0"}}

    async def index(self, index: str, id: str, body: dict[str, Any]) -> dict[str, Any]:  # noqa: A002
        created = id not in self.data.setdefault(index, {})
        self.data[index][id] = body
        return {"_index": index, "_id": id, "result": "created" if created else "updated"}

    async def delete(self, index: str, id: str) -> dict[str, Any]:  # noqa: A002
        if id not in self.data.get(index, {}):
            raise NotFoundError(404, "not_found", {"_index": index, "_id": id})
        del self.data[index][id]
        return {"_index": index, "_id": id, "result": "deleted"}

    async def bulk(self, body: list[dict[str, Any]]) -> dict[str, Any]:
        self.bulk_calls += 1
        items = []
        for action, source in zip(body[::2], body[1::2], strict=True):
            meta = action["index"]
            self.data.setdefault(meta["_index"], {})[meta["_id"]] = source
            items.append({"index": {"_index": meta["_index"], "_id": meta["_id"], "status": 201}})
        return {"took": 1, "errors": False, "items": items}

    async def search(self, index: str | None = None, body: dict[str, Any] | None = None) -> dict[str, Any]:
        body = body or {}
        self.searches.append({"index": index, "body": body})
        names = index.split(",") if index else list(self.data)
        hits = [
            {"_index": name, "_id": doc_id, "_score": 1.0, "_source": source}
            for name in names
            for doc_id, source in self.data.get(name, {}).items()
            if _matches(body.get("query", {"match_all": {}}), source)
        ]
        start = body.get("from", 0)
        size = body.get("size", 10)
        response: dict[str, Any] = {
            "took": 2,
            "timed_out": False,
            "hits": {"total": {"value": len(hits), "relation": "eq"}, "hits": hits[start:start + size]},
        }
        if "aggs" in body:
            response["aggregations"] = {}
            for name, agg in body["aggs"].items():
                field = agg["terms"]["field"]
                counts: Counter[str] = Counter()
                for hit in hits:
                    value = hit["_source"].get(field)
                    for item in value if isinstance(value, list) else [value]:
                        if item is not None:
                            counts[item] += 1
                response["aggregations"][name] = {
                    "buckets": [{"key": key, "doc_count": count} for key, count in counts.most_common()]
                }
        return response

    async def close(self) -> None:
        self.closed = True


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
    )


@pytest.fixture
def fake_client() -> FakeOpenSearch:
    return FakeOpenSearch()


@pytest.fixture
def registry() -> TypeRegistry:
    """Registry with the Article and BlogPost entity types."""
    registry = TypeRegistry()
    registry.register_all([Article, BlogPost])
    return registry


@pytest.fixture
def codec(registry: TypeRegistry) -> DocumentCodec:
    return DocumentCodec(registry)


@pytest.fixture
def locks() -> LocalLockService:
    return LocalLockService()


@pytest.fixture
def hello_article() -> Article:
    return Article(id=1, title="hello world", tags=[])


@pytest.fixture
def sample_post() -> BlogPost:
    return BlogPost(
        id="p-1",
        headline="Solar Nowcasting Explained",
        status=Status.PUBLISHED,
        views=42,
        authors=[
            Author(id=7, name="Jane Doe", address=Address(city="Boston", zip_code="02139")),
            Author(id=8, name="John Roe"),
        ],
    )


@pytest.fixture
def store(hello_article: Article) -> InMemoryStore:
    """Primary store with 45 articles (ids 1..45)."""
    articles = [hello_article] + [Article(id=i, title=f"article {i}", tags=["bulk"]) for i in range(2, 46)]
    return InMemoryStore(articles)
