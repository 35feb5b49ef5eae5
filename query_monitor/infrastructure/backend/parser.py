from __future__ import annotations

from typing import Any, List, Mapping

from pydantic import ValidationError

from query_monitor.core.logger import get_logger
from query_monitor.domain.errors import FetchError, FetchErrorKind
from query_monitor.domain.models import Sample, Snapshot
from query_monitor.metrics.instruments import SAMPLES_DROPPED_TOTAL

logger = get_logger("query_monitor.parser")


def unwrap_stats(payload: Any) -> Mapping[str, Any]:
    """Return the stats object from ``{"data": {"stats": ...}}`` style envelopes."""
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, Mapping) and isinstance(data.get("stats"), Mapping):
            return data["stats"]
        if isinstance(payload.get("stats"), Mapping):
            return payload["stats"]
        return payload
    raise FetchError(
        FetchErrorKind.TRANSIENT,
        f"unexpected query-stats payload type {type(payload).__name__}",
    )


def parse_snapshot(payload: Any) -> Snapshot:
    """Build a Snapshot, dropping individual samples that fail validation."""
    stats = dict(unwrap_stats(payload))
    raw_samples = stats.pop("slowQueries", None) or []
    if not isinstance(raw_samples, list):
        logger.warning(
            "slow_queries_not_a_list", extra={"type": type(raw_samples).__name__}
        )
        raw_samples = []

    samples: List[Sample] = []
    for index, raw in enumerate(raw_samples):
        try:
            samples.append(Sample.model_validate(raw))
        except ValidationError as e:
            SAMPLES_DROPPED_TOTAL.inc()
            logger.warning(
                "invalid_sample_dropped",
                extra={"index": index, "errors": e.error_count()},
            )

    try:
        return Snapshot.model_validate({**stats, "slowQueries": samples})
    except ValidationError as e:
        raise FetchError(
            FetchErrorKind.TRANSIENT, f"invalid query-stats payload: {e}"
        ) from e
