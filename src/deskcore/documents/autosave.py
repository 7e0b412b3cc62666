"""Per-path debounced autosave timers."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable
from enum import Enum

from deskcore.config import DEFAULT_AUTOSAVE_DELAY_SECONDS
from deskcore.errors import DeskCoreError, ErrorCode

logger = py_logging.getLogger(__name__)


class AutoSaveDecision(str, Enum):
    COMMIT = "commit"
    SKIP = "skip"
    DEFER = "defer"


Commit = Callable[[str], Awaitable[object]]
Decide = Callable[[str], AutoSaveDecision]


class AutoSaveScheduler:
    def __init__(
        self,
        commit: Commit,
        decide: Decide,
        *,
        delay: float = DEFAULT_AUTOSAVE_DELAY_SECONDS,
    ) -> None:
        if delay <= 0:
            raise DeskCoreError(
                f"Invalid autosave delay: {delay}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Use a positive delay in seconds.",
            )
        self.delay = delay
        self._commit = commit
        self._decide = decide
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task[object]] = set()

    def arm(self, path: str) -> None:
        loop = asyncio.get_running_loop()
        self.cancel(path)
        self._timers[path] = loop.call_later(self.delay, self._fire, path)

    def cancel(self, path: str) -> bool:
        handle = self._timers.pop(path, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for path in list(self._timers):
            self.cancel(path)

    def rename(self, old_path: str, new_path: str) -> bool:
        # The old timer must be gone before anything can fire for the new path.
        was_armed = self.cancel(old_path)
        if was_armed:
            self.arm(new_path)
        return was_armed

    def is_armed(self, path: str) -> bool:
        return path in self._timers

    def pending_paths(self) -> list[str]:
        return sorted(self._timers)

    async def drain(self) -> None:
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def _fire(self, path: str) -> None:
        self._timers.pop(path, None)
        decision = self._decide(path)
        if decision == AutoSaveDecision.DEFER:
            logger.debug("Autosave deferred path=%s", path)
            self.arm(path)
            return
        if decision == AutoSaveDecision.SKIP:
            logger.debug("Autosave skipped path=%s", path)
            return
        task = asyncio.get_running_loop().create_task(self._run(path))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, path: str) -> object:
        try:
            return await self._commit(path)
        except Exception:
            logger.exception("Autosave failed path=%s", path)
            return None
