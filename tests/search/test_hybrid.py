"""Tests for search/hybrid.py: threshold, merge order and degradation."""

from __future__ import annotations

from pathlib import Path

import pytest

from contextdex.config.models import IndexConfig, SearchConfig
from contextdex.core.errors import FallbackUnavailable
from contextdex.index.store import IndexStore
from contextdex.search.fallback import FallbackMatch
from contextdex.search.hybrid import HybridSearchEngine


class FakeFallback:
    """Stands in for RipgrepSearcher."""

    def __init__(self, matches: list[FallbackMatch] | None = None, error: Exception | None = None) -> None:
        self.matches = matches or []
        self.error = error
        self.queries: list[tuple[str, int]] = []

    async def search(self, query: str, limit: int) -> list[FallbackMatch]:
        self.queries.append((query, limit))
        if self.error is not None:
            raise self.error
        return self.matches[:limit]


def make_engine(store: IndexStore, fallback: FakeFallback | None, **search) -> HybridSearchEngine:
    return HybridSearchEngine(store, SearchConfig(**search), IndexConfig(), fallback=fallback)  # type: ignore[arg-type]


class TestHybridSearch:
    @pytest.mark.asyncio
    async def test_enough_index_hits_skip_fallback(self, built_store: IndexStore) -> None:
        fallback = FakeFallback()
        results = await make_engine(built_store, fallback).search("changeset", k=10)
        assert {r.name for r in results} == {"validate", "insert"}
        assert all(r.source == "index" for r in results)
        assert fallback.queries == []

    @pytest.mark.asyncio
    async def test_zero_k_returns_nothing(self, built_store: IndexStore) -> None:
        fallback = FakeFallback([FallbackMatch("lib/my_app/audit.ex", 8, "def log_insert(event) do", 170)])
        assert await make_engine(built_store, fallback).search("MyApp", k=0) == []
        assert fallback.queries == []

    @pytest.mark.asyncio
    async def test_default_k_when_unset(self, built_store: IndexStore) -> None:
        results = await make_engine(built_store, None, default_k=2).search("MyApp")
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_few_hits_append_fallback_after_index(self, built_store: IndexStore) -> None:
        fallback = FakeFallback(
            [
                # Same location as the indexed Repo.insert/1: dropped
                FallbackMatch("lib/my_app/repo.ex", 3, "def insert(changeset) do", 170),
                FallbackMatch("lib/my_app/audit.ex", 8, "def log_insert(event) do", 170),
            ]
        )
        results = await make_engine(built_store, fallback).search("insert", k=10)

        assert [(r.source, r.path, r.start_line) for r in results] == [
            ("index", "lib/my_app/repo.ex", 3),
            ("fallback", "lib/my_app/audit.ex", 8),
        ]
        extra = results[1]
        assert extra.id is None
        assert extra.arity is None
        assert extra.name == "log_insert"
        assert extra.container == "MyApp.Audit"
        assert extra.context == "def log_insert(event) do"

    @pytest.mark.asyncio
    async def test_fallback_disabled_per_call(self, built_store: IndexStore) -> None:
        fallback = FakeFallback([FallbackMatch("lib/x/y.ex", 1, "insert", 100)])
        results = await make_engine(built_store, fallback).search("insert", use_fallback=False)
        assert [r.source for r in results] == ["index"]
        assert fallback.queries == []

    @pytest.mark.asyncio
    async def test_fallback_disabled_by_config(self, built_store: IndexStore) -> None:
        fallback = FakeFallback([FallbackMatch("lib/x/y.ex", 1, "insert", 100)])
        await make_engine(built_store, fallback, use_fallback=False).search("insert")
        assert fallback.queries == []

    @pytest.mark.asyncio
    async def test_fallback_failure_degrades_to_index(self, built_store: IndexStore) -> None:
        fallback = FakeFallback(error=FallbackUnavailable.because("executable not found: rg"))
        results = await make_engine(built_store, fallback).search("insert")
        assert [r.name for r in results] == ["insert"]

    @pytest.mark.asyncio
    async def test_threshold_configurable(self, built_store: IndexStore) -> None:
        fallback = FakeFallback()
        await make_engine(built_store, fallback, min_index_results=3).search("changeset")
        assert fallback.queries == [("changeset", 10)]

    @pytest.mark.asyncio
    async def test_k_truncates_merged_results(self, built_store: IndexStore) -> None:
        fallback = FakeFallback([FallbackMatch(f"lib/x/f{i}.ex", i, "insert", 100) for i in range(1, 6)])
        results = await make_engine(built_store, fallback).search("insert", k=3)
        assert len(results) == 3
        assert results[0].source == "index"

    @pytest.mark.asyncio
    async def test_template_hits_tagged(self, store: IndexStore, make_entity) -> None:
        store.rebuild_full(
            [
                make_entity(
                    container="MyAppWeb.Live.UserLive",
                    name="template",
                    arity=0,
                    kind="template",
                    path="lib/my_app_web/live/user_live.html.heex",
                    lexical_text="MyAppWeb.Live.UserLive template heex header table",
                )
            ]
        )
        results = await make_engine(store, None).search("header")
        assert [r.source for r in results] == ["template"]

    @pytest.mark.asyncio
    async def test_results_serialize(self, built_store: IndexStore) -> None:
        [result] = await make_engine(built_store, None).search("insert")
        data = result.to_dict()
        assert data["source"] == "index"
        assert data["context"] == "def insert(changeset)"
        assert data["score"] > 0

    @pytest.mark.asyncio
    async def test_unbuilt_store_propagates(self, tmp_path: Path) -> None:
        from contextdex.core.errors import SchemaMissing

        store = IndexStore(tmp_path / "nope" / "index.db")
        with pytest.raises(SchemaMissing):
            await make_engine(store, FakeFallback()).search("x")
