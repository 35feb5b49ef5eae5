from math import floor
from typing import Dict, Iterable, List, Sequence

from query_monitor.domain.models import QueryGroup, Sample

from .fingerprint import fingerprint

P95_RANK = 0.95


def percentile_95(sorted_durations: Sequence[float]) -> float:
    """Nearest-rank P95 over ascending durations (index floor(0.95 * n))."""
    n = len(sorted_durations)
    index = min(int(floor(P95_RANK * n)), n - 1)
    return sorted_durations[index]


def build_group(key: str, samples: Sequence[Sample]) -> QueryGroup:
    durations = sorted(s.duration_ms for s in samples)
    first = samples[0]
    return QueryGroup(
        fingerprint=key,
        model=first.model,
        operation=first.operation,
        samples=tuple(samples),
        count=len(samples),
        avg_duration_ms=sum(durations) / len(durations),
        p95_duration_ms=percentile_95(durations),
        max_duration_ms=durations[-1],
        min_duration_ms=durations[0],
    )


def group_samples(samples: Iterable[Sample]) -> List[QueryGroup]:
    """Partition samples by fingerprint and summarize each partition.

    Groups come back in the order their fingerprint was first seen; samples
    inside a group keep their input order. Recomputed from scratch on every
    call.
    """
    partitions: Dict[str, List[Sample]] = {}
    for sample in samples:
        partitions.setdefault(fingerprint(sample.query), []).append(sample)
    return [build_group(key, members) for key, members in partitions.items()]
