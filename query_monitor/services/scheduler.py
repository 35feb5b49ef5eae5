"""Periodic auto-refresh task."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from query_monitor.core.logger import get_logger

logger = get_logger("query_monitor.scheduler")


class AutoRefreshScheduler:
    """Calls ``tick`` every ``interval`` seconds until stopped.

    ``tick`` is expected to be a non-forced refresh, so throttle and rate-limit
    backoff still apply to every automatic call. ``stop()`` may be called from
    inside ``tick``; the loop then exits after the tick returns.
    """

    def __init__(self, tick: Callable[[], Awaitable[object]], interval: float):
        self._tick = tick
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            return
        self._active = True
        self._task = asyncio.create_task(self._run(), name="query-monitor-auto-refresh")
        logger.info("auto_refresh_started", extra={"interval_seconds": self.interval})

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        logger.info("auto_refresh_stopped")

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:  # expected during shutdown
                logger.debug("auto_refresh_task_cancelled")

    async def _run(self) -> None:
        while self._active:
            await asyncio.sleep(self.interval)
            if not self._active:
                break
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("auto_refresh_tick_failed")
