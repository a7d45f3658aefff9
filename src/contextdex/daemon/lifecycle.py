"""Daemon lifecycle management."""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
import uvicorn

from contextdex.config.models import ContextdexConfig
from contextdex.daemon.scheduler import WatchScheduler
from contextdex.daemon.watcher import FileWatcher

if TYPE_CHECKING:
    from contextdex.mcp.context import AppContext

logger = structlog.get_logger()


@dataclass
class ServerController:
    """
    Orchestrates daemon components.

    Components:
    - WatchScheduler: Debounced, serialized incremental merges
    - FileWatcher: Async filesystem monitoring feeding the scheduler
    """

    repo_root: Path
    context: AppContext
    config: ContextdexConfig

    scheduler: WatchScheduler = field(init=False)
    watcher: FileWatcher = field(init=False)
    _shutdown_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def __post_init__(self) -> None:
        """Initialize components and attach the scheduler to the context."""
        self.scheduler = WatchScheduler(
            root=self.repo_root,
            extractor=self.context.pipeline.extractor,
            store=self.context.store,
            debounce_seconds=self.config.watcher.debounce_sec,
        )
        self.context.scheduler = self.scheduler

        self.watcher = FileWatcher(
            repo_root=self.repo_root,
            on_change=self.scheduler.notify_changes,
            on_delete=self.scheduler.notify_deletes,
            extensions=self.config.index.indexed_extensions,
            excluded_dirs=self.config.index.excluded_dirs,
            poll_interval=self.config.watcher.poll_interval_sec,
        )

    async def start(self) -> None:
        """Start all daemon components."""
        logger.info("server_starting", repo_root=str(self.repo_root))
        self.scheduler.start()
        await self.watcher.start()
        logger.info("server_started")

    async def stop(self) -> None:
        """Stop all daemon components gracefully."""
        logger.info("server_stopping")

        timeout = self.config.server.shutdown_timeout_sec
        try:
            async with asyncio.timeout(timeout):
                # Stop watcher first (no new events)
                await self.watcher.stop()

                # Stop scheduler (an active cycle completes)
                await self.scheduler.stop()
        except TimeoutError:
            logger.warning("server_stop_timeout", message=f"Shutdown timed out after {timeout}s")

        self.context.scheduler = None
        self._shutdown_event.set()
        logger.info("server_stopped")

    def wait_for_shutdown(self) -> asyncio.Event:
        """Get the shutdown event for external coordination."""
        return self._shutdown_event


async def ensure_index(context: AppContext) -> None:
    """Run a full build when the store has never been built."""
    status = context.store.status()
    if status.schema_present:
        return
    logger.info("index_missing_building", db_path=status.db_path)
    await context.pipeline.rebuild()


async def run_server(repo_root: Path, config: ContextdexConfig) -> None:
    """Run the HTTP daemon until a shutdown signal."""
    from contextdex.daemon.app import create_app
    from contextdex.mcp.context import AppContext

    context = AppContext.create(repo_root, config)
    await ensure_index(context)

    controller = ServerController(repo_root=repo_root, context=context, config=config)
    app = create_app(controller)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",  # Use structlog instead
        ws="none",  # Disable websockets - MCP uses streamable HTTP
    )
    server = uvicorn.Server(uvicorn_config)

    loop = asyncio.get_running_loop()
    shutdown_count = 0

    def signal_handler() -> None:
        nonlocal shutdown_count
        shutdown_count += 1
        logger.info("shutdown_signal_received", count=shutdown_count)
        server.should_exit = True
        if shutdown_count > 1:
            # Second signal - force immediate exit
            server.force_exit = True

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    base_url = f"http://{config.server.host}:{config.server.port}"
    try:
        await controller.start()
        logger.info("endpoint", name="mcp", url=f"{base_url}/mcp")
        logger.info("endpoint", name="health", url=f"{base_url}/health")
        logger.info("endpoint", name="status", url=f"{base_url}/status")
        await server.serve()
    finally:
        await controller.stop()
        context.store.close()
