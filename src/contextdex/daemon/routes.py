"""HTTP routes for the contextdex daemon.

Provides health and status endpoints. Both report a degraded store
instead of failing.
"""

from __future__ import annotations

import importlib.metadata
import os
import sys
import time
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

if TYPE_CHECKING:
    from contextdex.daemon.lifecycle import ServerController


def _get_version() -> str:
    """Get package version from installed metadata."""
    try:
        return importlib.metadata.version("contextdex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _get_runtime_info() -> dict[str, Any]:
    """Get Python runtime information."""
    return {
        "python_version": sys.version.split()[0],
        "pid": os.getpid(),
    }


def create_routes(controller: ServerController) -> list[Route]:
    """Create HTTP routes bound to the daemon controller."""
    start_time = time.time()
    version = _get_version()

    async def health(request: Request) -> JSONResponse:
        """Liveness plus store connectivity. 200 even when degraded."""
        _ = request  # unused
        store_status = controller.context.store.status()
        ok = store_status.connected and store_status.schema_present
        return JSONResponse(
            {
                "status": "healthy" if ok else "degraded",
                "ok": ok,
                "repo_root": str(controller.repo_root),
                "version": version,
                "uptime_seconds": round(time.time() - start_time, 1),
            }
        )

    async def status(request: Request) -> JSONResponse:
        """Detailed status: store counts, scheduler and watcher state."""
        _ = request  # unused
        response: dict[str, Any] = {
            "repo_root": str(controller.repo_root),
            "version": version,
            "uptime_seconds": round(time.time() - start_time, 1),
            "runtime": _get_runtime_info(),
            "store": controller.context.store.status().to_dict(),
            "scheduler": controller.scheduler.status.to_dict(),
            "watcher": {"running": controller.watcher.running},
        }
        return JSONResponse(response)

    return [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
    ]
