from .client import QueryStatsClient
from .errors import translate_error
from .parser import parse_snapshot

__all__ = ["QueryStatsClient", "translate_error", "parse_snapshot"]
