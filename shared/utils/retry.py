import asyncio
import inspect
import random
from typing import Awaitable, Callable, Iterable, Iterator, Optional, TypeVar

from shared.logging.logger import get_logger

T = TypeVar("T")

RetryHook = Callable[[int, BaseException, float], Optional[Awaitable[None]]]

logger = get_logger("shared.retry")


def backoff_delays(
    base_delay: float, max_delay: float, jitter: float
) -> Iterator[float]:
    """Exponential delays capped at ``max_delay`` plus up to ``jitter`` of each."""
    delay = base_delay
    while True:
        yield min(delay, max_delay) + random.uniform(0, delay * jitter)
        delay = min(delay * 2, max_delay)


async def _run_hook(
    hook: Optional[RetryHook], attempt: int, exc: BaseException, sleep_for: float
) -> None:
    if hook is None:
        return
    try:
        result = hook(attempt, exc, sleep_for)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.warning("retry_hook_failed", extra={"attempt": attempt}, exc_info=True)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.1,
    retry_on: Iterable[type[BaseException]] = (Exception,),
    on_retry: Optional[RetryHook] = None,
) -> T:
    """Await ``func`` up to ``retries`` times; the last failure propagates.

    Only exceptions listed in ``retry_on`` are retried. ``on_retry`` may be a
    plain function or a coroutine function; its own failures are logged.
    """
    retry_on = tuple(retry_on)
    delays = backoff_delays(base_delay, max_delay, jitter)
    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except retry_on as exc:  # type: ignore[misc]
            if attempt >= retries:
                raise
            sleep_for = next(delays)
            await _run_hook(on_retry, attempt, exc, sleep_for)
            await asyncio.sleep(sleep_for)
