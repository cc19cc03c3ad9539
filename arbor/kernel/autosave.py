"""
Arbor Kernel — Debounced autosave

Collects rapid edits and writes the latest document once things go quiet:

  edit at t=0.0s   } reset the quiet-period timer on every edit
  edit at t=0.5s   }
  → save at t=2.5s with the document as of t=0.5s

Guarantees:
  - a save happens at most max_delay after the first unsaved edit
  - after batch_threshold unsaved edits the save is issued right away
  - only the newest document is written (last write wins)

Failures are logged and counted in SaveStats. The in-memory document is the
source of truth and is never rolled back; retrying is the storage's business.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from arbor.config import settings
from arbor.kernel.exchange import TreeDocument
from arbor.kernel.types import now_iso

logger = logging.getLogger(__name__)

SaveFn = Callable[[TreeDocument], Awaitable[None]]


@dataclass
class SaveStats:
    """Caller-owned counters for one autosaver."""

    saves: int = 0
    failures: int = 0
    superseded: int = 0
    last_saved_at: str | None = None
    last_error: str | None = None


class AutoSaver:
    def __init__(
        self,
        save: SaveFn,
        *,
        delay: float | None = None,
        max_delay: float | None = None,
        batch_threshold: int | None = None,
        stats: SaveStats | None = None,
    ) -> None:
        self._save = save
        self._delay = settings.AUTOSAVE_DELAY if delay is None else delay
        self._max_delay = settings.AUTOSAVE_MAX_DELAY if max_delay is None else max_delay
        self._batch_threshold = settings.AUTOSAVE_BATCH_THRESHOLD if batch_threshold is None else batch_threshold
        if self._delay < 0 or self._max_delay < self._delay:
            raise ValueError("autosave delays must satisfy 0 <= delay <= max_delay")
        self.stats = stats or SaveStats()

        self._pending: TreeDocument | None = None
        self._change_count = 0
        self._last_save = time.monotonic()
        self._timer: asyncio.TimerHandle | None = None
        self._batch_timer: asyncio.TimerHandle | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def notify(self, document: TreeDocument) -> None:
        """Record a new document version. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        if self._pending is not None:
            self.stats.superseded += 1
        self._pending = document
        self._change_count += 1

        self._cancel(batch=False)

        idle = time.monotonic() - self._last_save
        if self._change_count >= self._batch_threshold or idle > self._max_delay:
            self._spawn()
            return

        self._timer = loop.call_later(self._delay, self._spawn)
        if self._batch_timer is None:
            self._batch_timer = loop.call_later(self._max_delay, self._spawn)

    async def flush(self) -> None:
        """Write the pending document now, if there is one."""
        self._cancel(batch=True)
        async with self._lock:
            document = self._pending
            if document is None:
                return
            self._pending = None
            count, self._change_count = self._change_count, 0
            try:
                await self._save(document)
            except Exception as e:
                self.stats.failures += 1
                self.stats.last_error = str(e)
                logger.exception("autosave: save failed after %d change(s)", count)
                return
            self._last_save = time.monotonic()
            self.stats.saves += 1
            self.stats.last_saved_at = now_iso()
            logger.debug("autosave: saved %d change(s)", count)

    async def close(self) -> None:
        """Flush any pending document and wait for in-flight saves."""
        await self.flush()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _spawn(self) -> None:
        task = asyncio.get_running_loop().create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel(self, *, batch: bool) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if batch and self._batch_timer is not None:
            self._batch_timer.cancel()
            self._batch_timer = None
