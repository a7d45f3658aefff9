"""FastMCP server creation and wiring.

Tools are logged in two phases: tool_start with params and tool_complete
with a summary. Expected failures are logged without tracebacks.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from fastmcp.utilities.json_schema import dereference_refs
from pydantic import BaseModel, Field

from contextdex.core.logging import clear_request_id, set_request_id

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from contextdex.config.models import ContextdexConfig
    from contextdex.mcp.context import AppContext
    from contextdex.mcp.errors import MCPError
    from contextdex.mcp.registry import ToolSpec

log = structlog.get_logger(__name__)


class ToolResponse(BaseModel):
    """Standardized tool response envelope."""

    result: Any = None
    meta: dict[str, Any] = Field(default_factory=dict)
    success: bool
    error: str | None = None


def _extract_log_params(kwargs: dict[str, Any]) -> dict[str, Any]:
    """Key params for the tool_start log, with long values shortened."""
    params: dict[str, Any] = {}
    for key, value in kwargs.items():
        if isinstance(value, str) and len(value) > 50:
            params[key] = value[:50] + "..."
        elif isinstance(value, list) and len(value) > 3:
            params[key] = f"[{len(value)} items]"
        elif value is not None:
            params[key] = value
    return params


def _extract_result_summary(result: dict[str, Any]) -> dict[str, Any]:
    summary: dict[str, Any] = {}
    if "count" in result:
        summary["count"] = result["count"]
    if "sources" in result and isinstance(result["sources"], list):
        summary["sources"] = len(result["sources"])
    if "entities" in result:
        summary["entities"] = result["entities"]
    return summary


def create_mcp_server(context: AppContext) -> FastMCP:
    """Create FastMCP server with all registered tools wired to context."""
    import fastmcp
    from fastmcp import FastMCP

    from contextdex.mcp.registry import registry

    # Import tools to trigger registration
    from contextdex.mcp.tools import index  # noqa: F401

    log.info("mcp_server_creating", repo_root=str(context.repo_root))

    # Configure FastMCP global settings for HTTP transport
    fastmcp.settings.stateless_http = True
    fastmcp.settings.json_response = True

    mcp = FastMCP(
        "contextdex",
        instructions=(
            "Structural code index. Use search to locate definitions, pack_context to "
            "read them with their callers and callees, refresh after large edits."
        ),
    )

    for spec in registry.get_all():
        _wire_tool(mcp, spec, context)

    log.info("mcp_server_created", tool_count=len(registry.get_all()))
    return mcp


def _wire_tool(mcp: FastMCP, spec: ToolSpec, context: AppContext) -> None:
    """Wire a single tool spec to FastMCP.

    The handler takes the params model's fields as direct parameters so
    FastMCP publishes a flat, fully dereferenced schema.
    """
    from fastmcp.tools.tool import FunctionTool

    flat_schema = dereference_refs(spec.params_model.model_json_schema())

    async def handler(**kwargs: Any) -> dict[str, Any]:
        return await invoke_tool(spec, context, kwargs)

    tool = FunctionTool(
        name=spec.name,
        description=spec.description,
        parameters=flat_schema,
        fn=handler,
    )
    mcp.add_tool(tool)


def _error_response(error: MCPError, request_id: str) -> dict[str, Any]:
    return ToolResponse(
        success=False,
        error=error.message,
        meta={"request_id": request_id, "error": error.to_response().to_dict()},
    ).model_dump()


async def invoke_tool(spec: ToolSpec, context: AppContext, kwargs: dict[str, Any]) -> dict[str, Any]:
    """Validate params, run the handler and wrap the outcome in a ToolResponse."""
    from pydantic import ValidationError

    from contextdex.core.errors import ContextdexError, InternalError
    from contextdex.mcp.errors import MCPError

    request_id = set_request_id()
    start_time = time.perf_counter()
    log.info("tool_start", tool=spec.name, **_extract_log_params(kwargs))

    def elapsed_ms() -> int:
        return int((time.perf_counter() - start_time) * 1000)

    try:
        try:
            params = spec.params_model(**kwargs)
        except ValidationError as e:
            first = e.errors()[0]["msg"] if e.errors() else str(e)
            log.warning("tool_validation_error", tool=spec.name, error=first, elapsed_ms=elapsed_ms())
            return ToolResponse(
                success=False,
                error=f"Validation error: {first}",
                meta={
                    "request_id": request_id,
                    "error_type": "validation",
                    "validation_errors": [
                        {"field": ".".join(str(x) for x in err["loc"]), "message": err["msg"]}
                        for err in e.errors()[:5]
                    ],
                },
            ).model_dump()

        try:
            result_data = await spec.handler(context, params)
        except (MCPError, ContextdexError) as e:
            mcp_error = e if isinstance(e, MCPError) else MCPError.from_core(e)
            log.warning(
                "tool_error",
                tool=spec.name,
                error_code=mcp_error.code.value,
                error=mcp_error.message,
                elapsed_ms=elapsed_ms(),
            )
            return _error_response(mcp_error, request_id)
        except Exception as e:
            log.error("tool_internal_error", tool=spec.name, error=str(e), elapsed_ms=elapsed_ms())
            log.debug("tool_internal_error_traceback", tool=spec.name, exc_info=True)
            internal = InternalError.unexpected(str(e), tool=spec.name, error_type=type(e).__name__)
            return _error_response(MCPError.from_core(internal), request_id)

        log.info("tool_complete", tool=spec.name, elapsed_ms=elapsed_ms(), **_extract_result_summary(result_data))
        return ToolResponse(
            success=True,
            result=result_data,
            meta={"request_id": request_id, "timestamp": int(time.time() * 1000)},
        ).model_dump()
    finally:
        clear_request_id()


def run_stdio(repo_root: Path, config: ContextdexConfig, watch: bool = True) -> None:
    """Run the MCP server over stdio, with the file watcher when ``watch``."""
    import asyncio

    from contextdex.core.logging import configure_logging
    from contextdex.daemon.lifecycle import ServerController, ensure_index
    from contextdex.mcp.context import AppContext

    configure_logging(config=config.logging, stdio=True)

    async def _serve() -> None:
        context = AppContext.create(repo_root, config)
        await ensure_index(context)
        mcp = create_mcp_server(context)

        controller = ServerController(repo_root=repo_root, context=context, config=config) if watch else None
        if controller is not None:
            await controller.start()
        log.info("mcp_server_running", transport="stdio", watch=watch)
        try:
            await mcp.run_async(transport="stdio")
        finally:
            if controller is not None:
                await controller.stop()
            context.store.close()

    asyncio.run(_serve())
