from __future__ import annotations

from typing import Dict, Optional

import httpx

from query_monitor.core.config import settings
from query_monitor.core.logger import get_logger
from query_monitor.domain.errors import ResetFailedError
from query_monitor.domain.models import Snapshot
from query_monitor.utils.concurrency import CancellationToken

from .errors import translate_error
from .parser import parse_snapshot

logger = get_logger("query_monitor.backend")


class QueryStatsClient:
    """Async adapter over the admin backend's query-stats endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers: Dict[str, str] = {"Accept": "application/json"}
        token = auth_token if auth_token is not None else settings.backend_auth_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.backend_base_url,
            headers=headers,
            timeout=timeout or settings.backend_timeout_seconds,
            transport=transport,
        )

    async def fetch_snapshot(self, token: Optional[CancellationToken] = None) -> Snapshot:
        """GET the current statistics; every failure surfaces as FetchError."""
        if token is not None:
            token.raise_if_cancelled()
        try:
            resp = await self._client.get(settings.backend_stats_path)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise translate_error(e) from e
        if token is not None:
            token.raise_if_cancelled()
        snapshot = parse_snapshot(payload)
        logger.debug(
            "query_stats_fetched", extra={"samples": len(snapshot.samples)}
        )
        return snapshot

    async def reset_snapshot(self) -> None:
        try:
            resp = await self._client.post(settings.backend_reset_path)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ResetFailedError(f"query stats reset failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
