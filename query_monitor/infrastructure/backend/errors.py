"""Translation of backend failures into FetchError variants.

The admin backend signals rate limiting in several ways: a dedicated error
code (on the exception or inside the JSON body), HTTP 429, or only a phrase
in the message. All of that sniffing lives here so the rest of the service
only ever sees ``FetchErrorKind``.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from query_monitor.core.config import settings
from query_monitor.domain.errors import FetchError, FetchErrorKind

RATE_LIMIT_STATUS = 429


def _body_json(response: Optional[httpx.Response]) -> Any:
    if response is None:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _extract_code(exc: BaseException, body: Any) -> Optional[str]:
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        return code
    if isinstance(body, dict):
        if isinstance(body.get("code"), str):
            return body["code"]
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), str):
            return error["code"]
    return None


def _extract_message(exc: BaseException, body: Any) -> str:
    parts = [str(exc)]
    if isinstance(body, dict):
        for candidate in (body.get("message"), (body.get("error") or {})):
            if isinstance(candidate, dict):
                candidate = candidate.get("message")
            if isinstance(candidate, str) and candidate:
                parts.append(candidate)
    return " | ".join(p for p in parts if p)


def is_rate_limited(
    code: Optional[str], http_status: Optional[int], message: str
) -> bool:
    if code and code in settings.rate_limit_error_codes:
        return True
    if http_status == RATE_LIMIT_STATUS:
        return True
    lowered = message.lower()
    return any(phrase in lowered for phrase in settings.rate_limit_phrases)


def translate_error(exc: BaseException) -> FetchError:
    """Classify any exception raised while talking to the backend."""
    if isinstance(exc, FetchError):
        return exc
    response = exc.response if isinstance(exc, httpx.HTTPStatusError) else None
    http_status = response.status_code if response is not None else None
    body = _body_json(response)
    code = _extract_code(exc, body)
    message = _extract_message(exc, body) or type(exc).__name__
    kind = (
        FetchErrorKind.RATE_LIMITED
        if is_rate_limited(code, http_status, message)
        else FetchErrorKind.TRANSIENT
    )
    return FetchError(kind, message, code=code, http_status=http_status)
