"""Tests for daemon/lifecycle.py and daemon/app.py."""

from __future__ import annotations

from pathlib import Path

import pytest
from starlette.applications import Starlette

from contextdex.config.models import ContextdexConfig
from contextdex.daemon.app import create_app
from contextdex.daemon.lifecycle import ServerController, ensure_index
from contextdex.mcp.context import AppContext


@pytest.fixture
def config(tmp_path: Path) -> ContextdexConfig:
    return ContextdexConfig.model_validate(
        {"index": {"index_path": str(tmp_path / "state")}, "watcher": {"debounce_sec": 0.05}}
    )


@pytest.fixture
def context(elixir_project: Path, config: ContextdexConfig):
    ctx = AppContext.create(elixir_project, config)
    yield ctx
    ctx.store.close()


class TestEnsureIndex:
    @pytest.mark.asyncio
    async def test_builds_missing_index(self, context: AppContext) -> None:
        assert context.store.status().schema_present is False
        await ensure_index(context)
        status = context.store.status()
        assert status.schema_present is True
        assert status.entity_count == 1

    @pytest.mark.asyncio
    async def test_existing_index_untouched(self, context: AppContext, make_entity) -> None:
        context.store.rebuild_full([make_entity(), make_entity(name="other")])
        await ensure_index(context)
        assert context.store.status().entity_count == 2


class TestServerController:
    def test_wires_scheduler_into_context(
        self, elixir_project: Path, context: AppContext, config: ContextdexConfig
    ) -> None:
        controller = ServerController(repo_root=elixir_project, context=context, config=config)
        assert context.scheduler is controller.scheduler
        assert controller.scheduler.debounce_seconds == 0.05
        assert controller.watcher.excluded_dirs == config.index.excluded_dirs

    @pytest.mark.asyncio
    async def test_start_and_stop(self, elixir_project: Path, context: AppContext, config: ContextdexConfig) -> None:
        await ensure_index(context)
        controller = ServerController(repo_root=elixir_project, context=context, config=config)

        await controller.start()
        assert controller.scheduler.accepting
        assert controller.watcher.running

        await controller.stop()
        assert not controller.watcher.running
        assert context.scheduler is None
        assert controller.wait_for_shutdown().is_set()


class TestCreateApp:
    def test_mounts_routes_and_mcp(self, elixir_project: Path, context: AppContext, config: ContextdexConfig) -> None:
        controller = ServerController(repo_root=elixir_project, context=context, config=config)
        app = create_app(controller)
        assert isinstance(app, Starlette)
        paths = [getattr(r, "path", None) for r in app.routes]
        assert paths[:2] == ["/health", "/status"]
        assert len(app.routes) == 3
