"""Integration tests for searchbind against a real OpenSearch node."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator

import pytest

from sample_entities.catalog import Article, BlogPost
from searchbind.backends.store import InMemoryStore
from searchbind.config.settings import Settings
from searchbind.core.engine import SearchBindEngine
from searchbind.models.criteria import SearchCriteria

pytestmark = [pytest.mark.integration]


@pytest.fixture
async def engine(opensearch_url: str) -> AsyncIterator[SearchBindEngine]:
    settings = Settings(
        _env_file=None,  # type: ignore[call-arg]
        opensearch={"hosts": [opensearch_url]},
        # smartcn is a plugin; the stock image only ships the standard analyzers
        index={"prefix": f"it_{uuid.uuid4().hex[:8]}_", "segmentation_analyzer": "standard"},
    )
    store = InMemoryStore(Article(id=i, title=f"solar report {i}", tags=["solar"]) for i in range(1, 31))
    e = SearchBindEngine(settings, store)
    e.register(Article, BlogPost)
    await e.initialize()
    yield e
    for type_name in e.registry.type_names:
        await e.client.indices.delete(index=e.registry.index_name_for(type_name), ignore_unavailable=True)
    await e.shutdown()


async def _refresh(engine: SearchBindEngine) -> None:
    await engine.client.indices.refresh(index=",".join(engine.registry.index_name_for(t) for t in engine.registry.type_names))


class TestClusterLifecycle:
    async def test_mapping_pushed(self, engine: SearchBindEngine) -> None:
        index = engine.registry.index_name_for("article")
        mapping = await engine.client.indices.get_mapping(index=index)
        properties = mapping[index]["mappings"]["properties"]
        assert properties["tags"]["type"] == "keyword"
        assert properties["title"]["type"] == "text"

    async def test_index_and_search(self, engine: SearchBindEngine) -> None:
        await engine.index(Article(id=100, title="hello world", tags=[]))
        await _refresh(engine)
        results = await engine.search(SearchCriteria(query="hello", types=["article"]))
        assert results == [Article(id=100, title="hello world")]

    async def test_rebuild(self, engine: SearchBindEngine) -> None:
        report = await engine.rebuild()
        assert report.succeeded
        await _refresh(engine)
        page = await engine.search_page(SearchCriteria(query="solar", types=["article"], page=1, page_size=5))
        assert page.total_results == 30
        assert len(page.results) == 5

    async def test_terms_count(self, engine: SearchBindEngine) -> None:
        await engine.index_all("article")
        await _refresh(engine)
        counts = await engine.count_terms_by_field(SearchCriteria(query="solar", types=["article"]), "tags")
        assert counts == {"solar": 30}

    async def test_health(self, engine: SearchBindEngine) -> None:
        health = await engine.health_check()
        assert health.status in ("healthy", "degraded")
