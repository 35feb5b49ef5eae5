from __future__ import annotations

import logging
import re
from typing import Iterable

from shared.logging.json import configure_logging as configure_json_logging

from .config import settings

REDACTED_MESSAGE = "[REDACTED SENSITIVE LOG CONTENT]"


class RedactingFilter(logging.Filter):
    """Replaces the whole message when it mentions a sensitive word."""

    def __init__(self, patterns: Iterable[str]):
        super().__init__()
        words = [re.escape(p) for p in patterns if p]
        self._pattern = re.compile("|".join(words), re.IGNORECASE) if words else None

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if self._pattern is None:
            return True
        try:
            message = record.getMessage()
        except (TypeError, ValueError):  # bad %-args; the handler reports them
            return True
        if self._pattern.search(message):
            record.msg = REDACTED_MESSAGE
            record.args = ()
        return True


def configure_logging() -> None:
    """Install JSON logging for the service; later calls are no-ops."""
    root = logging.getLogger()
    if any(isinstance(f, RedactingFilter) for h in root.handlers for f in h.filters):
        return
    root = configure_json_logging(
        service=settings.otel_service_name,
        environment=settings.app_environment,
        level=settings.app_log_level,
        redaction_patterns=settings.app_log_redaction_patterns,
    )
    message_filter = RedactingFilter(settings.app_log_redaction_patterns)
    for handler in root.handlers:
        handler.addFilter(message_filter)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
