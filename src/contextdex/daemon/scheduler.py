"""Watch scheduler: coalesces file events into serialized incremental merges.

Design:
- Change events accumulate in a pending set behind a sliding debounce timer
- One cycle at a time: snapshot pending, extract, merge on a single worker
- Events that arrive mid-cycle go to a secondary map (last event per path
  wins) and are drained when the cycle finishes, success or failure
- Deletes skip the extractor and purge directly
"""

from __future__ import annotations

import asyncio
import contextlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from contextdex.core.errors import ExtractionFailed
from contextdex.index.extractor import Extractor
from contextdex.index.store import IndexStore

logger = structlog.get_logger()


class SchedulerState(Enum):
    """Watch scheduler state."""

    IDLE = "idle"
    REBUILDING = "rebuilding"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PendingOp(Enum):
    """Operation recorded for a path while a cycle is active."""

    CHANGE = "change"
    DELETE = "delete"


@dataclass
class SchedulerStatus:
    """Current scheduler status."""

    state: SchedulerState
    active_rebuild: bool
    pending: int
    secondary: int
    cycles: int
    last_count: int | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "active_rebuild": self.active_rebuild,
            "pending": self.pending,
            "secondary": self.secondary,
            "cycles": self.cycles,
            "last_count": self.last_count,
            "last_error": self.last_error,
        }


@dataclass
class WatchScheduler:
    """
    Drives Extractor -> IndexStore for batches of changed files.

    The active-rebuild flag is only read and written on the event loop,
    with no await between check and set. Store mutations run on a
    single-worker executor, so merges and purges never overlap.
    """

    root: Path
    extractor: Extractor
    store: IndexStore
    debounce_seconds: float = 0.5

    _state: SchedulerState = field(default=SchedulerState.STOPPED, init=False)
    _executor: ThreadPoolExecutor | None = field(default=None, init=False)
    _pending: set[str] = field(default_factory=set, init=False)
    _secondary: dict[str, PendingOp] = field(default_factory=dict, init=False)
    _active_rebuild: bool = field(default=False, init=False)
    _debounce_task: asyncio.Task[None] | None = field(default=None, init=False)
    _cycle_task: asyncio.Task[None] | None = field(default=None, init=False)
    _cycles: int = field(default=0, init=False)
    _last_count: int | None = field(default=None, init=False)
    _last_error: str | None = field(default=None, init=False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the single-worker executor."""
        if self._executor is not None:
            return
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="contextdex-merge")
        self._state = SchedulerState.IDLE
        logger.info("watch_scheduler_started", debounce_sec=self.debounce_seconds)

    async def stop(self) -> None:
        """Stop gracefully. A cycle already running completes first."""
        self._state = SchedulerState.STOPPING

        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._debounce_task

        if self._cycle_task is not None and not self._cycle_task.done():
            await asyncio.shield(self._cycle_task)

        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

        self._state = SchedulerState.STOPPED
        logger.info("watch_scheduler_stopped", cycles=self._cycles)

    @property
    def accepting(self) -> bool:
        return self._executor is not None and self._state not in (
            SchedulerState.STOPPING,
            SchedulerState.STOPPED,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _relative(self, path: str | Path) -> str:
        p = Path(path)
        if p.is_absolute():
            with contextlib.suppress(ValueError):
                p = p.relative_to(self.root)
        return p.as_posix()

    def notify_change(self, path: str | Path) -> None:
        """Record an add/change event."""
        rel = self._relative(path)
        if self._active_rebuild:
            self._secondary[rel] = PendingOp.CHANGE
            logger.debug("change_deferred", path=rel, secondary=len(self._secondary))
            return
        self._pending.add(rel)
        self._schedule_flush()

    def notify_changes(self, paths: list[Path]) -> None:
        for path in paths:
            self.notify_change(path)

    async def notify_delete(self, path: str | Path) -> None:
        """Record a delete event. Purges immediately unless a cycle is active."""
        rel = self._relative(path)
        if self._active_rebuild:
            self._secondary[rel] = PendingOp.DELETE
            logger.debug("delete_deferred", path=rel, secondary=len(self._secondary))
            return
        await self._purge(rel)

    async def notify_deletes(self, paths: list[Path]) -> None:
        for path in paths:
            await self.notify_delete(path)

    async def queue_paths(self, paths: list[str] | list[Path]) -> None:
        """Explicit refresh: existing files are changes, missing files are deletes."""
        for path in paths:
            rel = self._relative(path)
            if (self.root / rel).exists():
                self.notify_change(rel)
            else:
                await self.notify_delete(rel)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def _schedule_flush(self) -> None:
        """(Re)arm the debounce timer."""
        if not self.accepting:
            return
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounced_flush())

    async def _debounced_flush(self) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            return
        # The cycle runs as its own task so re-arming the timer never cancels it
        self._cycle_task = asyncio.get_running_loop().create_task(self._run_cycle())

    async def _run_cycle(self) -> None:
        if not self.accepting:
            return
        if not self._pending or self._active_rebuild:
            return

        batch = sorted(self._pending)
        self._pending.clear()
        self._active_rebuild = True
        self._state = SchedulerState.REBUILDING
        logger.info("merge_cycle_started", paths=len(batch))

        try:
            entities = await self.extractor.extract(batch)
            loop = asyncio.get_running_loop()
            count = await loop.run_in_executor(
                self._executor,
                self.store.merge_incremental,
                entities,
                batch,
            )
            self._last_count = count
            self._last_error = None
            logger.info("merge_cycle_completed", paths=len(batch), entities=count)
        except ExtractionFailed as e:
            self._last_error = str(e)
            logger.warning("extraction_failed", paths=len(batch), error=e.message)
        except Exception as e:
            self._last_error = str(e)
            logger.error("merge_cycle_failed", paths=len(batch), error=str(e))
        finally:
            self._active_rebuild = False
            self._cycles += 1
            if self._state == SchedulerState.REBUILDING:
                self._state = SchedulerState.IDLE
            await self._drain_secondary()

    async def rebuild_all(self) -> int:
        """Full rebuild, serialized with incremental cycles.

        Waits for an active cycle, then holds the active-rebuild flag for
        the whole scan so events arriving meanwhile are deferred.
        """
        while self._active_rebuild:
            if self._cycle_task is not None and not self._cycle_task.done():
                await asyncio.shield(self._cycle_task)
            else:
                await asyncio.sleep(0.01)

        # A full scan covers whatever was pending
        self._pending.clear()
        self._active_rebuild = True
        self._state = SchedulerState.REBUILDING
        logger.info("full_rebuild_started")
        try:
            entities = await self.extractor.extract_all()
            loop = asyncio.get_running_loop()
            count = await loop.run_in_executor(self._executor, self.store.rebuild_full, entities)
            self._last_count = count
            self._last_error = None
            return count
        except Exception as e:
            self._last_error = str(e)
            raise
        finally:
            self._active_rebuild = False
            self._cycles += 1
            if self._state == SchedulerState.REBUILDING:
                self._state = SchedulerState.IDLE
            await self._drain_secondary()

    async def _drain_secondary(self) -> None:
        """Apply events deferred during the last cycle."""
        deferred = self._secondary
        self._secondary = {}
        for path, op in deferred.items():
            if op is PendingOp.DELETE:
                await self._purge(path)
            else:
                self._pending.add(path)

        if self._pending:
            logger.debug("deferred_changes_requeued", count=len(self._pending))
            self._schedule_flush()

    async def _purge(self, rel: str) -> None:
        if self._executor is None:
            return
        loop = asyncio.get_running_loop()
        try:
            removed = await loop.run_in_executor(self._executor, self.store.purge_by_path, rel)
        except Exception as e:
            self._last_error = str(e)
            logger.error("purge_failed", path=rel, error=str(e))
            return
        logger.info("path_deleted", path=rel, removed=removed)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            state=self._state,
            active_rebuild=self._active_rebuild,
            pending=len(self._pending),
            secondary=len(self._secondary),
            cycles=self._cycles,
            last_count=self._last_count,
            last_error=self._last_error,
        )

    async def wait_until_idle(self, timeout: float = 30.0) -> bool:
        """Wait until no timer, cycle or queued work remains. False on timeout."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            tasks = [t for t in (self._debounce_task, self._cycle_task) if t is not None and not t.done()]
            if not tasks and not self._active_rebuild and not self._pending and not self._secondary:
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            if tasks:
                await asyncio.wait(tasks, timeout=remaining)
            else:
                await asyncio.sleep(0.01)
