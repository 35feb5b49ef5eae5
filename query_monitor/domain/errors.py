from __future__ import annotations

from enum import Enum
from typing import Optional


class FetchErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"


class QueryMonitorError(Exception):
    """Base class for errors raised by the query monitor."""


class FetchError(QueryMonitorError):
    """Backend read failure, already classified at the adapter boundary."""

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.http_status = http_status

    @property
    def is_rate_limited(self) -> bool:
        return self.kind is FetchErrorKind.RATE_LIMITED

    def __repr__(self) -> str:
        return (
            f"FetchError(kind={self.kind.value!r}, message={self.message!r}, "
            f"code={self.code!r}, http_status={self.http_status!r})"
        )


class SnapshotUnavailableError(QueryMonitorError):
    """A fetch failed and there is no cached snapshot to fall back to."""

    def __init__(self, cause: FetchError):
        super().__init__(f"query statistics unavailable: {cause.message}")
        self.cause = cause


class ResetFailedError(QueryMonitorError):
    """The backend refused or failed the reset; local state is untouched."""


class CoordinatorClosedError(QueryMonitorError):
    pass


class NothingToExportError(QueryMonitorError):
    pass


class FetchCancelledError(QueryMonitorError):
    """Raised by the backend adapter when its cancellation token fires."""
