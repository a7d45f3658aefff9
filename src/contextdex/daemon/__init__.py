"""contextdex daemon - HTTP server with file watching and incremental merges."""

from contextdex.daemon.app import create_app
from contextdex.daemon.lifecycle import ServerController, run_server
from contextdex.daemon.scheduler import PendingOp, SchedulerState, SchedulerStatus, WatchScheduler
from contextdex.daemon.watcher import FileWatcher

__all__ = [
    "FileWatcher",
    "PendingOp",
    "SchedulerState",
    "SchedulerStatus",
    "ServerController",
    "WatchScheduler",
    "create_app",
    "run_server",
]
