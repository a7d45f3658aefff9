"""File watcher using watchfiles for async filesystem monitoring.

Design:
- watchfiles awatch over the project root with an extension + directory filter
- Falls back to polling for cross-filesystem mounts (WSL /mnt/*)
- Forwards batches immediately; debouncing belongs to the WatchScheduler
- Classifies each path by whether it still exists once the batch arrives
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import Counter
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from watchfiles import Change, DefaultFilter, awatch

logger = structlog.get_logger()


def _is_cross_filesystem(path: Path) -> bool:
    """Detect if path is on a cross-filesystem mount (WSL /mnt/*, network drives, etc.)."""
    resolved = path.resolve()
    path_str = str(resolved)
    # WSL accessing Windows filesystem: /mnt/c/, /mnt/d/, etc.
    # Must be single letter followed by / (not /mnt/data/ which is a regular mount)
    if (
        path_str.startswith("/mnt/")
        and len(path_str) > 6
        and path_str[5].isalpha()
        and path_str[6] == "/"
    ):
        return True
    # Common network/remote mounts
    return path_str.startswith(("/run/user/", "/media/", "/net/"))


def _summarize_changes_by_type(paths: list[Path]) -> str:
    """Summarize file changes by type, e.g. "2 Elixir files, 1 HEEx template"."""
    ext_names: dict[str, tuple[str, str]] = {
        ".ex": ("Elixir file", "Elixir files"),
        ".exs": ("Elixir script", "Elixir scripts"),
        ".heex": ("HEEx template", "HEEx templates"),
        ".eex": ("EEx template", "EEx templates"),
    }

    ext_counts: Counter[str] = Counter(p.suffix.lower() for p in paths)

    parts: list[str] = []
    for ext, count in ext_counts.most_common(3):  # Top 3 types
        label = ext.lstrip(".").upper() if ext else "other"
        singular, plural = ext_names.get(ext, (f"{label} file", f"{label} files"))
        parts.append(f"{count} {singular if count == 1 else plural}")

    shown_count = sum(count for _, count in ext_counts.most_common(3))
    remaining = len(paths) - shown_count
    if remaining > 0:
        word = "other" if remaining == 1 else "others"
        parts.append(f"{remaining} {word}")

    return ", ".join(parts)


class IndexedFileFilter(DefaultFilter):
    """watchfiles filter admitting only indexed extensions outside excluded dirs."""

    def __init__(self, extensions: Sequence[str], excluded_dirs: Sequence[str]) -> None:
        super().__init__(ignore_dirs=[*DefaultFilter.ignore_dirs, *excluded_dirs])
        self.extensions = tuple(extensions)

    def __call__(self, change: Change, path: str) -> bool:
        return path.endswith(self.extensions) and super().__call__(change, path)


@dataclass
class FileWatcher:
    """
    Async file watcher feeding the scheduler.

    ``on_change`` receives paths that exist after the batch (added or
    modified), ``on_delete`` receives paths that are gone.
    """

    repo_root: Path
    on_change: Callable[[list[Path]], None]
    on_delete: Callable[[list[Path]], Awaitable[None]]
    extensions: Sequence[str] = (".ex", ".exs", ".heex")
    excluded_dirs: Sequence[str] = ()
    poll_interval: float = 1.0  # Seconds between polls (cross-filesystem)

    _watch_task: asyncio.Task[None] | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _is_cross_fs: bool = field(init=False)
    _filter: IndexedFileFilter = field(init=False)

    def __post_init__(self) -> None:
        self._is_cross_fs = _is_cross_filesystem(self.repo_root)
        self._filter = IndexedFileFilter(self.extensions, self.excluded_dirs)

    @property
    def running(self) -> bool:
        return self._watch_task is not None and not self._watch_task.done()

    async def start(self) -> None:
        """Start watching for file changes."""
        if self._watch_task is not None:
            return

        self._stop_event.clear()
        self._watch_task = asyncio.create_task(self._watch_loop())
        logger.info(
            "file_watcher_started",
            repo_root=str(self.repo_root),
            mode="polling" if self._is_cross_fs else "native",
            interval=self.poll_interval if self._is_cross_fs else None,
        )

    async def stop(self) -> None:
        """Stop watching for file changes."""
        self._stop_event.set()

        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._watch_task, timeout=2.0)
            self._watch_task = None

        logger.info("file_watcher_stopped")

    async def _watch_loop(self) -> None:
        """Main watch loop. Restarts awatch after unexpected errors."""
        try:
            while not self._stop_event.is_set():
                try:
                    async for changes in awatch(
                        self.repo_root,
                        watch_filter=self._filter,
                        stop_event=self._stop_event,
                        force_polling=self._is_cross_fs,
                        poll_delay_ms=int(self.poll_interval * 1000),
                        ignore_permission_denied=True,
                    ):
                        await self._handle_changes(changes)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if self._stop_event.is_set():
                        return
                    logger.error("watcher_error", error=str(e))
                    # Brief backoff before retry
                    await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            pass

    async def _handle_changes(self, changes: set[tuple[Change, str]]) -> None:
        """Split a raw batch into changed and deleted paths and dispatch them."""
        paths = sorted({Path(raw) for _, raw in changes})
        if not paths:
            return

        changed = [p for p in paths if p.is_file()]
        deleted = [p for p in paths if not p.exists()]

        logger.info(
            "changes_detected",
            count=len(paths),
            summary=_summarize_changes_by_type(paths),
            deleted=len(deleted),
        )

        if deleted:
            await self.on_delete(deleted)
        if changed:
            self.on_change(changed)
