"""Single owner of the current/previous query-stats snapshots.

Every read of the backend goes through ``FetchCoordinator.refresh``, which
applies, in order: single-flight, throttle (including the rate-limit
penalty), and then the outcome handling for success, rate limiting and other
failures. A forced refresh bypasses single-flight and throttle and cancels
whatever fetch is still running; the cancelled fetch's result is never
installed.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from query_monitor.core.config import settings
from query_monitor.core.logger import get_logger
from query_monitor.domain.errors import (
    CoordinatorClosedError,
    FetchCancelledError,
    FetchError,
    FetchErrorKind,
    ResetFailedError,
    SnapshotUnavailableError,
)
from query_monitor.domain.events import MonitorEvent, Notification
from query_monitor.domain.models import MonitorState, Snapshot
from query_monitor.metrics.instruments import (
    FETCH_ATTEMPTS_TOTAL,
    FETCH_CANCELLED_TOTAL,
    FETCH_FAILURES_TOTAL,
    FETCH_LATENCY_SECONDS,
    FETCH_SKIPPED_TOTAL,
    RESETS_TOTAL,
    SNAPSHOT_SAMPLES,
)
from query_monitor.utils.concurrency import CancellationToken

from .scheduler import AutoRefreshScheduler

logger = get_logger("query_monitor.coordinator")

Listener = Callable[[Notification], None]


class SnapshotBackend(Protocol):
    async def fetch_snapshot(
        self, token: Optional[CancellationToken] = None
    ) -> Snapshot: ...

    async def reset_snapshot(self) -> None: ...


class FetchCoordinator:
    def __init__(
        self,
        backend: SnapshotBackend,
        *,
        min_interval: Optional[float] = None,
        rate_limit_penalty: Optional[float] = None,
        auto_refresh_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._backend = backend
        self.min_interval = (
            settings.fetch_min_interval_seconds if min_interval is None else min_interval
        )
        self.rate_limit_penalty = (
            settings.rate_limit_penalty_seconds
            if rate_limit_penalty is None
            else rate_limit_penalty
        )
        self._clock = clock
        self._scheduler = AutoRefreshScheduler(
            self._auto_tick,
            settings.auto_refresh_interval_seconds
            if auto_refresh_interval is None
            else auto_refresh_interval,
        )

        self._current: Optional[Snapshot] = None
        self._previous: Optional[Snapshot] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None
        self._last_attempt_at: Optional[float] = None
        self._throttle_until: float = float("-inf")
        self._last_fetch_at: Optional[datetime] = None
        self._error: Optional[str] = None
        self._stale = False
        self._listeners: List[Listener] = []
        self._opened = False
        self._closed = False

    # Lifecycle -----------------------------------------------------------

    def open(self) -> "FetchCoordinator":
        if self._closed:
            raise CoordinatorClosedError("coordinator cannot be reopened")
        self._opened = True
        logger.info(
            "coordinator_opened",
            extra={
                "min_interval": self.min_interval,
                "rate_limit_penalty": self.rate_limit_penalty,
            },
        )
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._scheduler.aclose()
        task = self._in_flight
        self._cancel_in_flight()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:  # expected during shutdown
                logger.debug("in_flight_fetch_cancelled")
            except Exception:  # noqa: BLE001
                logger.debug("in_flight_fetch_non_critical_exit", exc_info=True)
        logger.info("coordinator_closed")

    async def __aenter__(self) -> "FetchCoordinator":
        return self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # Read side -------------------------------------------------------------

    @property
    def current(self) -> Optional[Snapshot]:
        return self._current

    @property
    def previous(self) -> Optional[Snapshot]:
        return self._previous

    @property
    def fetching(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def auto_refresh_active(self) -> bool:
        return self._scheduler.active

    def state(self) -> MonitorState:
        return MonitorState(
            loading=self.fetching,
            snapshot=self._current,
            previous_snapshot=self._previous,
            error=self._error,
            stale=self._stale,
            auto_refresh_active=self._scheduler.active,
            last_fetch_at=self._last_fetch_at,
        )

    # Notifications ---------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: MonitorEvent, message: str, level: str = "info") -> None:
        note = Notification(event=event, message=message, level=level)
        for listener in list(self._listeners):
            try:
                listener(note)
            except Exception:  # noqa: BLE001
                logger.exception("listener_failed", extra={"event": event.value})

    # Commands --------------------------------------------------------------

    async def refresh(self, force: bool = False) -> Optional[Snapshot]:
        """Fetch a new snapshot unless policy says to serve the current one.

        Raises SnapshotUnavailableError only when the fetch failed for a
        reason other than rate limiting and nothing is cached.
        """
        self._ensure_open()
        if self.fetching and not force:
            FETCH_SKIPPED_TOTAL.labels(reason="in_flight").inc()
            logger.debug("fetch_skipped_in_flight")
            return self._current

        now = self._clock()
        if not force and now < self._throttle_until:
            FETCH_SKIPPED_TOTAL.labels(reason="throttled").inc()
            logger.debug(
                "fetch_throttled",
                extra={"retry_in_seconds": round(self._throttle_until - now, 2)},
            )
            return self._current

        self._cancel_in_flight()
        token = CancellationToken()
        self._token = token
        self._last_attempt_at = now
        self._throttle_until = now + self.min_interval
        FETCH_ATTEMPTS_TOTAL.inc()
        task = asyncio.create_task(self._run_fetch(token))
        self._in_flight = task
        task.add_done_callback(_retrieve_outcome)

        await asyncio.wait({task})
        if task.cancelled():
            return self._current
        return task.result()

    async def reset(self) -> Optional[Snapshot]:
        """Clear backend samples, then force a fresh read."""
        self._ensure_open()
        try:
            await self._backend.reset_snapshot()
        except ResetFailedError:
            RESETS_TOTAL.labels(outcome="failed").inc()
            logger.error("reset_failed", exc_info=True)
            raise
        except Exception as e:
            RESETS_TOTAL.labels(outcome="failed").inc()
            logger.error("reset_failed", exc_info=True)
            raise ResetFailedError(f"query stats reset failed: {e}") from e
        RESETS_TOTAL.labels(outcome="succeeded").inc()
        logger.info("query_stats_reset")
        self._notify(MonitorEvent.RESET_SUCCEEDED, "Query statistics reset successfully")
        return await self.refresh(force=True)

    def enable_auto_refresh(self, enabled: bool) -> None:
        self._ensure_open()
        if enabled:
            self._scheduler.start()
        else:
            self._scheduler.stop()

    # Internals -------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise CoordinatorClosedError("coordinator is closed")
        if not self._opened:
            raise CoordinatorClosedError("coordinator has not been opened")

    def _cancel_in_flight(self) -> None:
        if self._token is not None:
            self._token.cancel()
        task = self._in_flight
        if task is not None and not task.done():
            task.cancel()
            FETCH_CANCELLED_TOTAL.inc()
            logger.info("in_flight_fetch_superseded")

    async def _auto_tick(self) -> None:
        try:
            await self.refresh(force=False)
        except SnapshotUnavailableError:
            logger.debug("auto_refresh_tick_without_snapshot")

    async def _run_fetch(self, token: CancellationToken) -> Optional[Snapshot]:
        started = time.perf_counter()
        try:
            snapshot = await self._backend.fetch_snapshot(token)
        except FetchCancelledError:
            FETCH_CANCELLED_TOTAL.inc()
            return self._current
        except FetchError as e:
            if token.cancelled or self._closed:
                return self._current
            return self._handle_failure(e)
        except Exception as e:  # noqa: BLE001
            if token.cancelled or self._closed:
                return self._current
            return self._handle_failure(
                FetchError(FetchErrorKind.TRANSIENT, str(e) or type(e).__name__)
            )

        if token.cancelled or self._closed:
            FETCH_CANCELLED_TOTAL.inc()
            logger.info("stale_fetch_discarded")
            return self._current
        FETCH_LATENCY_SECONDS.observe(time.perf_counter() - started)
        return self._install(snapshot)

    def _install(self, snapshot: Snapshot) -> Snapshot:
        fetched_at = datetime.now(timezone.utc)
        snapshot = snapshot.model_copy(update={"fetched_at": fetched_at})
        self._previous, self._current = self._current, snapshot
        self._last_fetch_at = fetched_at
        self._error = None
        self._stale = False
        SNAPSHOT_SAMPLES.set(len(snapshot.samples))
        logger.info(
            "snapshot_installed",
            extra={
                "samples": len(snapshot.samples),
                "total_queries": snapshot.total_queries,
                "had_previous": self._previous is not None,
            },
        )
        return snapshot

    def _handle_failure(self, error: FetchError) -> Optional[Snapshot]:
        FETCH_FAILURES_TOTAL.labels(kind=error.kind.value).inc()
        if error.is_rate_limited:
            self._error = None
            self._throttle_until = (
                self._clock() + self.min_interval + self.rate_limit_penalty
            )
            logger.warning(
                "fetch_rate_limited_serving_cache",
                extra={
                    "has_cache": self._current is not None,
                    "backoff_seconds": self.min_interval + self.rate_limit_penalty,
                },
            )
            if self._scheduler.active:
                self._scheduler.stop()
                self._notify(
                    MonitorEvent.AUTO_REFRESH_PAUSED,
                    "Auto-refresh paused due to rate limit. Please refresh manually.",
                    level="warning",
                )
            return self._current

        logger.error(
            "fetch_failed",
            extra={
                "error": error.message,
                "code": error.code,
                "http_status": error.http_status,
                "has_cache": self._current is not None,
            },
        )
        self._error = error.message
        if self._current is not None:
            self._stale = True
            self._notify(
                MonitorEvent.FETCH_FAILED_STALE,
                "Failed to fetch query statistics. Showing cached data.",
                level="error",
            )
            return self._current
        self._notify(
            MonitorEvent.FETCH_FAILED,
            "Failed to fetch query statistics",
            level="error",
        )
        raise SnapshotUnavailableError(error)


def _retrieve_outcome(task: asyncio.Task) -> None:
    # the caller may have stopped waiting; mark the failure as seen
    if not task.cancelled():
        task.exception()
