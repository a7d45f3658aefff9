"""Starlette application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.routing import BaseRoute, Mount

from contextdex.daemon.routes import create_routes

if TYPE_CHECKING:
    from contextdex.daemon.lifecycle import ServerController


def create_app(controller: ServerController) -> Starlette:
    """Create the Starlette application with the MCP server mounted."""
    from contextdex.mcp.server import create_mcp_server

    routes: list[BaseRoute] = list(create_routes(controller))

    mcp = create_mcp_server(controller.context)
    mcp_app = mcp.http_app(path="/mcp", transport="streamable-http")
    routes.append(Mount("/", app=mcp_app))

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        # Controller stop is handled by run_server so it runs even if
        # the lifespan exit is interrupted
        async with mcp_app.lifespan(app):
            yield

    return Starlette(routes=routes, lifespan=lifespan)
