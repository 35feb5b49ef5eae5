"""JSON line logging used by every service.

Each record becomes one JSON object: fixed service fields first, then
whatever the call site passed through ``extra=``, then an ``exception`` block
when there is one. Keys matching a redaction pattern are masked at any depth.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import traceback
from datetime import datetime, timezone
from typing import IO, Any, Iterable, Optional

from .logger import mark_configured

REDACTED = "[REDACTED]"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class KeyRedactor:
    """Masks mapping values whose key contains one of ``patterns``."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = tuple(p.lower() for p in patterns)

    def is_sensitive(self, key: str) -> bool:
        lowered = key.lower()
        return any(p in lowered for p in self.patterns)

    def redact(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                k: REDACTED if self.is_sensitive(str(k)) else self.redact(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.redact(item) for item in value]
        return value


class JsonLineFormatter(logging.Formatter):
    def __init__(
        self,
        service: str,
        environment: str,
        redaction_patterns: Iterable[str],
    ):
        super().__init__()
        self.static_fields = {
            "service": service,
            "environment": environment,
            "hostname": socket.gethostname(),
            "pid": os.getpid(),
        }
        self.redactor = KeyRedactor(redaction_patterns)

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static_fields,
        }
        payload.update(
            (k, v)
            for k, v in record.__dict__.items()
            if k not in _RECORD_ATTRS and k not in payload
        )
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = exception_fields(record.exc_info)
        return json.dumps(self.redactor.redact(payload), default=str)


def exception_fields(exc_info) -> dict[str, Any]:
    exc_type, exc, tb = exc_info
    return {
        "type": exc_type.__name__,
        "message": str(exc),
        "stack": traceback.format_tb(tb),
    }


def configure_logging(
    service: str,
    environment: str,
    level: str,
    redaction_patterns: Iterable[str],
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Route the root logger through a single JSON line handler."""
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonLineFormatter(service, environment, redaction_patterns))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    mark_configured()
    return root


__all__ = [
    "JsonLineFormatter",
    "KeyRedactor",
    "configure_logging",
    "exception_fields",
]
