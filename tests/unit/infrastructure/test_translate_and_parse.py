import httpx
import pytest

from query_monitor.domain.errors import FetchError, FetchErrorKind
from query_monitor.infrastructure.backend import parse_snapshot, translate_error
from query_monitor.infrastructure.backend.errors import is_rate_limited
from query_monitor.infrastructure.backend.parser import unwrap_stats


class CodedError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


def status_error(status, **kwargs):
    request = httpx.Request("GET", "http://backend.test/api/superadmin/query-stats")
    response = httpx.Response(status, request=request, **kwargs)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


def test_existing_fetch_error_is_returned_unchanged():
    original = FetchError(FetchErrorKind.TRANSIENT, "x")
    assert translate_error(original) is original


def test_error_code_attribute_marks_rate_limit():
    error = translate_error(CodedError("denied", "RATE_5001"))
    assert error.is_rate_limited
    assert error.code == "RATE_5001"


def test_unknown_code_is_transient():
    error = translate_error(CodedError("denied", "AUTH_4001"))
    assert error.kind is FetchErrorKind.TRANSIENT


def test_plain_exception_mentioning_rate_limit():
    assert translate_error(RuntimeError("Rate limit exceeded")).is_rate_limited


def test_status_error_with_top_level_code():
    error = translate_error(status_error(400, json={"code": "RATE_5001"}))
    assert error.is_rate_limited
    assert error.http_status == 400


def test_status_error_message_includes_body_message():
    error = translate_error(status_error(502, json={"message": "upstream gone"}))
    assert error.kind is FetchErrorKind.TRANSIENT
    assert "upstream gone" in error.message


@pytest.mark.parametrize(
    "code, status, message, expected",
    [
        ("RATE_5001", None, "", True),
        (None, 429, "", True),
        (None, 500, "You hit the rate limit", True),
        (None, 500, "internal error", False),
        ("OTHER", 400, "bad request", False),
    ],
)
def test_is_rate_limited(code, status, message, expected):
    assert is_rate_limited(code, status, message) is expected


def test_unwrap_accepts_each_envelope():
    stats = {"totalQueries": 1}
    assert unwrap_stats({"data": {"stats": stats}}) == stats
    assert unwrap_stats({"stats": stats}) == stats
    assert unwrap_stats(stats) == stats


def test_unwrap_rejects_non_object():
    with pytest.raises(FetchError):
        unwrap_stats(["not", "an", "object"])


def test_parse_snapshot_with_missing_fields_uses_defaults():
    snapshot = parse_snapshot({"data": {"stats": {}}})
    assert snapshot.samples == ()
    assert snapshot.total_queries == 0
    assert snapshot.slow_query_rate == 0.0


def test_parse_snapshot_rejects_invalid_totals():
    with pytest.raises(FetchError) as excinfo:
        parse_snapshot({"totalQueries": -3})
    assert excinfo.value.kind is FetchErrorKind.TRANSIENT


def test_parse_snapshot_ignores_non_list_samples():
    snapshot = parse_snapshot({"slowQueries": "oops", "totalQueries": 3})
    assert snapshot.samples == ()
    assert snapshot.total_queries == 3


def test_naive_timestamps_are_read_as_utc():
    snapshot = parse_snapshot(
        {
            "slowQueries": [
                {"timestamp": "2025-03-14T09:00:00", "model": "User", "operation": "find", "duration": 1}
            ]
        }
    )
    assert snapshot.samples[0].timestamp.utcoffset().total_seconds() == 0
