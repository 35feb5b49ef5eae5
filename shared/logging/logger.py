"""Logger lookup for code that can run before a service configures logging.

Library modules under ``shared`` create their loggers at import time. Until a
service installs the JSON handler, plain text output to stderr is used.
"""

from __future__ import annotations

import logging
import os

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def mark_configured() -> None:
    global _configured
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        level = os.getenv("APP_LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO), format=PLAIN_FORMAT
        )
        mark_configured()
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
