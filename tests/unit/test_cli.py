"""Tests for the administrative CLI."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

import sample_entities
from searchbind.backends.store import InMemoryStore
from searchbind.cli import _load_object, main

if TYPE_CHECKING:
    from conftest import FakeOpenSearch


@pytest.fixture(autouse=True)
def isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, fake_client: FakeOpenSearch) -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("searchbind.core.engine.create_client", lambda settings: fake_client)
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code  # type: ignore[return-value]


# ── Arguments ────────────────────────────────────────────────────────────────


class TestArguments:
    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--version"]) == 0
        assert "searchbind 0.1.0" in capsys.readouterr().out

    def test_command_required(self) -> None:
        assert _run([]) == 2

    def test_entities_required(self) -> None:
        assert _run(["mapping"]) == 2

    def test_store_required_for_rebuild(self) -> None:
        assert _run(["rebuild", "-e", "sample_entities"]) == 2

    def test_missing_config(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--config", "missing.yaml", "mapping", "-e", "sample_entities"]) == 1
        assert "Config file not found" in capsys.readouterr().err


# ── Commands ─────────────────────────────────────────────────────────────────


class TestCommands:
    def test_mapping(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--log-level", "error", "mapping", "-e", "sample_entities"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert set(output) == {"article", "bare", "post"}
        assert output["article"]["index"] == "index_article"
        assert output["article"]["mapping"]["properties"]["tags"] == {"type": "keyword"}

    def test_mapping_single_type(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--log-level", "error", "mapping", "-e", "sample_entities", "--type", "post"]) == 0
        assert list(json.loads(capsys.readouterr().out)) == ["post"]

    def test_mapping_unknown_type(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--log-level", "error", "mapping", "-e", "sample_entities", "-t", "missing"]) == 1
        assert "Unknown document type: missing" in capsys.readouterr().err

    def test_ensure(self, fake_client: FakeOpenSearch) -> None:
        assert _run(["--log-level", "error", "ensure", "-e", "sample_entities"]) == 0
        assert set(fake_client.mappings) == {"index_article", "index_bare", "index_post"}
        assert fake_client.closed

    def test_rebuild(self, fake_client: FakeOpenSearch, capsys: pytest.CaptureFixture[str]) -> None:
        argv = ["--log-level", "error", "rebuild", "-e", "sample_entities", "-s", "searchbind.backends.store:InMemoryStore"]
        assert _run(argv) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["started"] is True
        assert [t["type_name"] for t in report["types"]] == ["article", "bare", "post"]

    def test_index_all(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        from sample_entities.catalog import Article

        monkeypatch.setattr(sample_entities, "STORE", InMemoryStore([Article(id=1, title="a")]), raising=False)
        argv = ["--log-level", "error", "index-all", "article", "-e", "sample_entities", "-s", "sample_entities:STORE"]
        assert _run(argv) == 0
        assert json.loads(capsys.readouterr().out)["indexed"] == 1


class TestLoadObject:
    def test_factory_is_called(self) -> None:
        assert isinstance(_load_object("searchbind.backends.store:InMemoryStore"), InMemoryStore)

    def test_instance_is_returned(self, monkeypatch: pytest.MonkeyPatch) -> None:
        store = InMemoryStore()
        monkeypatch.setattr(sample_entities, "STORE", store, raising=False)
        assert _load_object("sample_entities:STORE") is store

    @pytest.mark.parametrize("path", ["no_colon", "sample_entities:MISSING", "missing_module:x"])
    def test_bad_path_exits(self, path: str) -> None:
        with pytest.raises(SystemExit):
            _load_object(path)
