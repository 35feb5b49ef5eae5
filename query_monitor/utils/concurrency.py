import asyncio

from query_monitor.domain.errors import FetchCancelledError


class CancellationToken:
    """Cooperative cancellation handle handed to one outbound fetch.

    The coordinator cancels the token when a newer fetch supersedes the one
    holding it or when it shuts down; whoever holds it checks it before
    applying results.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelledError("fetch cancelled")
