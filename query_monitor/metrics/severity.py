from typing import Dict, Iterable, Optional

from query_monitor.core.config import settings
from query_monitor.domain.models import Sample, Severity


def classify_severity(
    duration_ms: float, threshold_ms: Optional[float] = None
) -> Severity:
    if threshold_ms is None:
        threshold_ms = settings.severity_threshold_ms
    if duration_ms > threshold_ms * 4:
        return Severity.CRITICAL
    if duration_ms > threshold_ms * 2:
        return Severity.HIGH
    if duration_ms > threshold_ms:
        return Severity.ELEVATED
    return Severity.NORMAL


def severity_breakdown(
    samples: Iterable[Sample], threshold_ms: Optional[float] = None
) -> Dict[Severity, int]:
    counts = {level: 0 for level in Severity}
    for sample in samples:
        counts[classify_severity(sample.duration_ms, threshold_ms)] += 1
    return counts
