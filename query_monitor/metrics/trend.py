from math import floor
from typing import Dict, Iterable, List, Optional

from query_monitor.core.config import settings
from query_monitor.domain.models import QueryGroup, Trend, TrendDirection


def round_half_up(value: float) -> int:
    return int(floor(value + 0.5))


def compute_trend(
    current_avg: float,
    previous_avg: Optional[float],
    noise_threshold: Optional[int] = None,
) -> Optional[Trend]:
    """Classify the change of a group's average against its previous average.

    Changes smaller than ``noise_threshold`` percent are treated as noise.
    """
    if not previous_avg:
        return None
    if noise_threshold is None:
        noise_threshold = settings.trend_noise_threshold_percent
    change = round_half_up(100 * (current_avg - previous_avg) / previous_avg)
    if abs(change) < noise_threshold:
        return None
    direction = TrendDirection.SLOWING if change > 0 else TrendDirection.SPEEDING
    return Trend(change_percent=change, direction=direction)


def attach_trends(
    groups: Iterable[QueryGroup], previous_groups: Iterable[QueryGroup]
) -> List[QueryGroup]:
    baseline: Dict[str, float] = {
        g.fingerprint: g.avg_duration_ms for g in previous_groups
    }
    out: List[QueryGroup] = []
    for group in groups:
        trend = compute_trend(group.avg_duration_ms, baseline.get(group.fingerprint))
        out.append(group.model_copy(update={"trend": trend}))
    return out
