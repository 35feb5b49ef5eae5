import httpx
import pytest

from query_monitor.domain.errors import (
    FetchCancelledError,
    FetchError,
    FetchErrorKind,
    ResetFailedError,
)
from query_monitor.infrastructure.backend import QueryStatsClient
from query_monitor.utils.concurrency import CancellationToken

STATS = {
    "slowQueries": [
        {
            "timestamp": "2025-03-14T09:00:00.000Z",
            "model": "User",
            "operation": "find",
            "duration": 600,
            "query": {"id": 1},
        },
        {
            "timestamp": "2025-03-14T09:01:00.000Z",
            "model": "User",
            "operation": "find",
            "duration": 800,
            "query": {"id": 2},
        },
    ],
    "totalQueries": 40,
    "slowQueriesCount": 2,
    "averageQueryTime": 31.5,
    "maxQueryTime": 800,
    "threshold": 100,
}


def make_client(handler, **kwargs) -> QueryStatsClient:
    return QueryStatsClient(
        base_url="http://backend.test/api",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_fetch_unwraps_envelope_and_sends_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"success": True, "data": {"stats": STATS}})

    client = make_client(handler, auth_token="abc123")
    snapshot = await client.fetch_snapshot()
    await client.close()

    assert seen["url"] == "http://backend.test/api/superadmin/query-stats"
    assert seen["auth"] == "Bearer abc123"
    assert len(snapshot.samples) == 2
    assert snapshot.total_queries == 40
    assert snapshot.slow_query_rate == 5.0
    assert snapshot.samples[0].duration_ms == 600


@pytest.mark.asyncio
async def test_no_auth_header_without_credentials():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json=STATS)

    client = make_client(handler, auth_token="")
    await client.fetch_snapshot()
    await client.close()

    assert seen["auth"] is None


@pytest.mark.asyncio
async def test_http_429_is_rate_limited():
    client = make_client(lambda request: httpx.Response(429, json={"message": "slow down"}))

    with pytest.raises(FetchError) as excinfo:
        await client.fetch_snapshot()
    await client.close()

    assert excinfo.value.kind is FetchErrorKind.RATE_LIMITED
    assert excinfo.value.http_status == 429


@pytest.mark.asyncio
async def test_rate_limit_code_in_body_is_rate_limited():
    body = {"success": False, "error": {"code": "RATE_5001", "message": "Slow down"}}
    client = make_client(lambda request: httpx.Response(400, json=body))

    with pytest.raises(FetchError) as excinfo:
        await client.fetch_snapshot()
    await client.close()

    assert excinfo.value.is_rate_limited
    assert excinfo.value.code == "RATE_5001"


@pytest.mark.asyncio
async def test_rate_limit_phrase_in_message_is_rate_limited():
    body = {"message": "Too Many Requests, try later"}
    client = make_client(lambda request: httpx.Response(503, json=body))

    with pytest.raises(FetchError) as excinfo:
        await client.fetch_snapshot()
    await client.close()

    assert excinfo.value.is_rate_limited


@pytest.mark.asyncio
async def test_server_error_is_transient():
    client = make_client(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(FetchError) as excinfo:
        await client.fetch_snapshot()
    await client.close()

    assert excinfo.value.kind is FetchErrorKind.TRANSIENT
    assert excinfo.value.http_status == 500


@pytest.mark.asyncio
async def test_connection_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(FetchError) as excinfo:
        await client.fetch_snapshot()
    await client.close()

    assert excinfo.value.kind is FetchErrorKind.TRANSIENT
    assert excinfo.value.http_status is None
    assert "connection refused" in excinfo.value.message


@pytest.mark.asyncio
async def test_non_json_body_is_transient():
    client = make_client(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(FetchError) as excinfo:
        await client.fetch_snapshot()
    await client.close()

    assert excinfo.value.kind is FetchErrorKind.TRANSIENT


@pytest.mark.asyncio
async def test_invalid_samples_are_dropped():
    stats = dict(STATS)
    stats["slowQueries"] = STATS["slowQueries"] + [
        {"timestamp": "not a date", "model": "User", "operation": "find", "duration": 5},
        {"timestamp": "2025-03-14T09:02:00Z", "operation": "find", "duration": 5},
        {"timestamp": "2025-03-14T09:02:00Z", "model": "User", "operation": "find", "duration": -1},
    ]
    client = make_client(lambda request: httpx.Response(200, json=stats))

    snapshot = await client.fetch_snapshot()
    await client.close()

    assert len(snapshot.samples) == 2


@pytest.mark.asyncio
async def test_cancelled_token_skips_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=STATS)

    token = CancellationToken()
    token.cancel()
    client = make_client(handler)

    with pytest.raises(FetchCancelledError):
        await client.fetch_snapshot(token)
    await client.close()

    assert calls == []


@pytest.mark.asyncio
async def test_reset_posts_to_reset_endpoint():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"success": True})

    client = make_client(handler)
    await client.reset_snapshot()
    await client.close()

    assert seen == [("POST", "/api/superadmin/query-stats/reset")]


@pytest.mark.asyncio
async def test_reset_failure_raises_reset_failed():
    client = make_client(lambda request: httpx.Response(403, json={"message": "forbidden"}))

    with pytest.raises(ResetFailedError):
        await client.reset_snapshot()
    await client.close()
