"""Index MCP tools - search, pack_context, refresh, index_status, health."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from pydantic import Field, model_validator

from contextdex.config.constants import SEARCH_MAX_K
from contextdex.mcp.errors import MCPErrorCode, remediation_for
from contextdex.mcp.registry import registry
from contextdex.mcp.tools.base import BaseParams

if TYPE_CHECKING:
    from contextdex.mcp.context import AppContext


# =============================================================================
# Params
# =============================================================================


class SearchParams(BaseParams):
    """Parameters for search."""

    query: str = Field(..., min_length=1, description="Search query")
    k: int = Field(default=10, ge=1, le=SEARCH_MAX_K, description="Maximum results")
    use_fallback: bool = Field(
        default=True,
        description="Run ripgrep when the index returns too few results",
    )


class PackContextParams(BaseParams):
    """Parameters for pack_context. Exactly one selector is used; ids win."""

    ids: list[str] | None = Field(default=None, description="Entity ids from search results")
    query: str | None = Field(default=None, description="Index query selecting entities")
    k: int = Field(default=10, ge=1, le=SEARCH_MAX_K, description="Maximum entities for a query")

    @model_validator(mode="after")
    def _require_selector(self) -> PackContextParams:
        if not self.ids and not self.query:
            raise ValueError("Provide ids or query")
        return self


class RefreshParams(BaseParams):
    """Parameters for refresh. No paths means a full rebuild."""

    paths: list[str] | None = Field(
        default=None,
        description="Project-relative paths to refresh incrementally",
    )


class StatusParams(BaseParams):
    """Parameters for index_status."""


class HealthParams(BaseParams):
    """Parameters for health."""


# =============================================================================
# Summary Helpers
# =============================================================================


def _summarize_search(results: list[dict[str, Any]], query: str) -> str:
    q = query if len(query) <= 20 else query[:17] + "..."
    if not results:
        return f'no results for "{q}"'
    fallback = sum(1 for r in results if r["source"] == "fallback")
    suffix = f" ({fallback} from fallback)" if fallback else ""
    return f'{len(results)} results for "{q}"{suffix}'


# =============================================================================
# Handlers
# =============================================================================


@registry.register(
    "search",
    "Search indexed entities; falls back to ripgrep when the index has few matches",
    SearchParams,
)
async def search(ctx: AppContext, params: SearchParams) -> dict[str, Any]:
    results = await ctx.engine.search(params.query, k=params.k, use_fallback=params.use_fallback)
    payload = [r.to_dict() for r in results]
    return {
        "results": payload,
        "count": len(payload),
        "summary": _summarize_search(payload, params.query),
    }


@registry.register(
    "pack_context",
    "Pack entities and their call neighbours into a compact text bundle",
    PackContextParams,
)
async def pack_context(ctx: AppContext, params: PackContextParams) -> dict[str, Any]:
    pack = await asyncio.to_thread(ctx.packer.pack, params.ids, params.query, params.k)
    result = pack.to_dict()
    result["summary"] = f"{len(pack.sources)} entities packed"
    return result


@registry.register(
    "refresh",
    "Refresh the index: full rebuild without paths, incremental with paths",
    RefreshParams,
)
async def refresh(ctx: AppContext, params: RefreshParams) -> dict[str, Any]:
    """Refresh through the scheduler when it runs, otherwise through the pipeline."""
    paths = params.paths or []
    mode = "incremental" if paths else "full"

    if ctx.scheduler is not None:
        if paths:
            await ctx.scheduler.queue_paths(paths)
            return {
                "started": True,
                "mode": mode,
                "files": len(paths),
                "summary": f"{len(paths)} paths queued",
            }
        count = await ctx.scheduler.rebuild_all()
        return {"started": True, "mode": mode, "files": 0, "entities": count, "summary": f"rebuilt {count} entities"}

    result = await (ctx.pipeline.update(paths) if paths else ctx.pipeline.rebuild())
    return {
        "started": True,
        "mode": mode,
        "files": len(paths),
        "entities": result.entities,
        "summary": f"{mode} refresh: {result.entities} entities",
    }


@registry.register("index_status", "Index store counts and scheduler state", StatusParams)
async def index_status(ctx: AppContext, params: StatusParams) -> dict[str, Any]:
    _ = params  # no options
    status = ctx.store.status().to_dict()
    if ctx.scheduler is not None:
        status["scheduler"] = ctx.scheduler.status.to_dict()
    status["summary"] = f"{status['entity_count']} entities, {status['edge_count']} edges"
    return status


@registry.register("health", "Server and store health", HealthParams)
async def health(ctx: AppContext, params: HealthParams) -> dict[str, Any]:
    _ = params  # no options
    store = ctx.store.status()
    ok = store.connected and store.schema_present
    result: dict[str, Any] = {
        "ok": ok,
        "repo_root": str(ctx.repo_root),
        "store": store.to_dict(),
    }
    if ctx.scheduler is not None:
        result["scheduler"] = ctx.scheduler.status.to_dict()
    if not ok:
        result["remediation"] = remediation_for(MCPErrorCode.SCHEMA_MISSING)
    result["summary"] = "healthy" if ok else "degraded"
    return result
