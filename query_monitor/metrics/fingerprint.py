"""Query shape fingerprints.

A fingerprint is the query serialized to compact JSON with literal values
replaced by ``?`` and cut to a bounded length. Queries that differ only in
their parameters share a fingerprint. Distinct shapes whose first
``max_length`` normalized characters coincide also collide; this is an
accepted approximation.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from query_monitor.core.config import settings
from query_monitor.core.logger import get_logger

from .instruments import FINGERPRINT_FALLBACKS_TOTAL

logger = get_logger("query_monitor.fingerprint")

PLACEHOLDER = "?"

_VALUE_AFTER_COLON = re.compile(r""":\s*["']?[^"',}\]]+["']?""")
_DIGIT_RUN = re.compile(r"\d+")
_QUOTED_LITERAL = re.compile(r"""["'][^"']*["']""")


def serialize_query(query: Any) -> str:
    """Render a query the way it is searched, exported and fingerprinted."""
    if isinstance(query, str):
        return query
    try:
        return json.dumps(query, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        FINGERPRINT_FALLBACKS_TOTAL.inc()
        logger.debug(
            "query_serialization_fallback", extra={"query_type": type(query).__name__}
        )
        return str(query)


def normalize(query: Any) -> str:
    # falsy scalars (None, "", 0, False) have no shape; empty containers do
    if not query and not isinstance(query, (dict, list)):
        return ""
    text = serialize_query(query)
    text = _VALUE_AFTER_COLON.sub(":" + PLACEHOLDER, text)
    text = _DIGIT_RUN.sub(PLACEHOLDER, text)
    text = _QUOTED_LITERAL.sub(PLACEHOLDER, text)
    return text.strip()


def fingerprint(query: Any, max_length: Optional[int] = None) -> str:
    if max_length is None:
        max_length = settings.fingerprint_max_length
    return normalize(query)[:max_length]
