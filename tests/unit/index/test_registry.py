"""Tests for the Type Registry."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Annotated

import pytest
from pydantic import BaseModel

from sample_entities.catalog import Address, Article, Bare, BlogPost
from searchbind.config.settings import IndexSettings
from searchbind.exceptions import SchemaError
from searchbind.index.registry import TypeRegistry, type_name_of
from searchbind.schema.markers import SearchableProperty, searchable


class Unmarked(BaseModel):
    id: int


@searchable(type="article")
class ArticleImpostor(BaseModel):
    id: int


@searchable()
class AbstractDocument(BaseModel, ABC):
    id: int

    @abstractmethod
    def render(self) -> str: ...


class SpecialArticle(Article):
    extra: Annotated[str, SearchableProperty()] = ""


# ── Naming ───────────────────────────────────────────────────────────────────


class TestNaming:
    def test_default_type_name(self) -> None:
        assert type_name_of(Article) == "article"

    def test_explicit_type_name(self) -> None:
        assert type_name_of(BlogPost) == "post"

    def test_index_name(self) -> None:
        registry = TypeRegistry()
        assert registry.index_name_for("article") == "index_article"
        assert registry.index_name_for("Article") == "index_article"

    def test_index_name_is_deterministic(self) -> None:
        registry = TypeRegistry()
        names = {registry.index_name_for(name) for name in ("article", "post", "article")}
        assert names == {"index_article", "index_post"}

    def test_custom_prefix(self) -> None:
        registry = TypeRegistry.from_settings(IndexSettings(prefix="app_"))
        assert registry.index_name_for("post") == "app_post"


# ── Registration ─────────────────────────────────────────────────────────────


class TestRegistration:
    def test_register_returns_name(self) -> None:
        registry = TypeRegistry()
        assert registry.register(Article) == "article"
        assert "article" in registry
        assert len(registry) == 1

    def test_register_is_idempotent(self) -> None:
        registry = TypeRegistry()
        registry.register(Article)
        assert registry.register(Article) == "article"
        assert registry.type_names == ["article"]

    def test_registration_order(self, registry: TypeRegistry) -> None:
        assert registry.type_names == ["article", "post"]

    def test_undecorated_raises(self) -> None:
        with pytest.raises(SchemaError, match="not decorated"):
            TypeRegistry().register(Unmarked)

    def test_undecorated_subclass_raises(self) -> None:
        with pytest.raises(SchemaError, match="not decorated"):
            TypeRegistry().register(SpecialArticle)

    def test_duplicate_name_raises(self) -> None:
        registry = TypeRegistry()
        registry.register(Article)
        with pytest.raises(SchemaError, match="Duplicate document type 'article'"):
            registry.register(ArticleImpostor)

    def test_non_root_skipped(self) -> None:
        registry = TypeRegistry()
        assert registry.register(Address) is None
        assert len(registry) == 0

    def test_abstract_skipped(self) -> None:
        assert TypeRegistry().register(AbstractDocument) is None

    def test_local_class_skipped(self) -> None:
        @searchable()
        class Local(BaseModel):
            id: int

        assert TypeRegistry().register(Local) is None

    def test_empty_mapping_registers(self) -> None:
        registry = TypeRegistry()
        assert registry.register(Bare) == "bare"
        assert registry.mapping_for("bare").properties == {}

    def test_register_all(self) -> None:
        registry = TypeRegistry()
        assert registry.register_all([Article, Address, BlogPost]) == ["article", "post"]

    def test_concurrent_registration(self) -> None:
        registry = TypeRegistry()
        threads = [threading.Thread(target=registry.register, args=(t,)) for t in (Article, BlogPost, Bare) * 4]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert sorted(registry.type_names) == ["article", "bare", "post"]


# ── Scanning ─────────────────────────────────────────────────────────────────


class TestScan:
    def test_scan_package(self) -> None:
        registry = TypeRegistry()
        names = registry.scan("sample_entities")
        assert sorted(names) == ["article", "bare", "post"]
        assert registry.entity_type_for("post") is BlogPost

    def test_scan_missing_package(self) -> None:
        with pytest.raises(SchemaError, match="Cannot scan package"):
            TypeRegistry().scan("sample_entities_missing")


# ── Lookups ──────────────────────────────────────────────────────────────────


class TestLookups:
    def test_round_trip(self, registry: TypeRegistry) -> None:
        assert registry.entity_type_for(registry.type_name_for(Article)) is Article

    def test_subclass_resolves_to_base(self, registry: TypeRegistry) -> None:
        assert registry.type_name_for(SpecialArticle) == "article"

    def test_unknown_returns_none(self, registry: TypeRegistry) -> None:
        assert registry.type_name_for(Unmarked) is None
        assert registry.entity_type_for("missing") is None
        assert registry.mapping_for("missing") is None

    def test_type_name_for_index(self, registry: TypeRegistry) -> None:
        assert registry.type_name_for_index("index_post") == "post"
        assert registry.type_name_for_index("index_missing") is None
        assert registry.type_name_for_index("other_post") is None

    def test_mapping_cached(self, registry: TypeRegistry) -> None:
        assert registry.mapping_for("post") is registry.mapping_for("post")
        assert registry.mapping_for("post").id_field == "id"
