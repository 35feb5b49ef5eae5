"""Filter, group, sort and page snapshot samples for display.

Everything here is a pure function of its arguments.
"""

from __future__ import annotations

from collections import Counter
from math import ceil
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from query_monitor.core.config import settings
from query_monitor.domain.models import (
    ChartData,
    DistributionEntry,
    FilterOptions,
    HourlyBucket,
    QueryGroup,
    Sample,
    Snapshot,
    SnapshotSummary,
    SortKey,
    SortOrder,
    ViewPage,
    ViewState,
)
from query_monitor.metrics.aggregator import group_samples
from query_monitor.metrics.bucketing import hour_bucket
from query_monitor.metrics.fingerprint import serialize_query
from query_monitor.metrics.severity import severity_breakdown
from query_monitor.metrics.trend import attach_trends, round_half_up

T = TypeVar("T")
Item = Union[QueryGroup, Sample]


def filter_samples(samples: Sequence[Sample], view: ViewState) -> List[Sample]:
    filtered = list(samples)
    if view.search:
        needle = view.search.lower()
        filtered = [
            s
            for s in filtered
            if needle in s.model.lower()
            or needle in s.operation.lower()
            or needle in serialize_query(s.query).lower()
        ]
    if view.model is not None:
        filtered = [s for s in filtered if s.model == view.model]
    if view.operation is not None:
        filtered = [s for s in filtered if s.operation == view.operation]
    return filtered


def _sample_sort_value(sort_by: SortKey) -> Callable[[Sample], Any]:
    if sort_by is SortKey.TIMESTAMP:
        return lambda s: s.timestamp
    if sort_by is SortKey.MODEL:
        return lambda s: s.model
    return lambda s: s.duration_ms


def _group_sort_value(sort_by: SortKey) -> Callable[[QueryGroup], Any]:
    if sort_by is SortKey.TIMESTAMP:
        return lambda g: g.latest_timestamp
    if sort_by is SortKey.MODEL:
        return lambda g: g.model
    return lambda g: g.avg_duration_ms


def sort_items(items: Sequence[T], sort_by: SortKey, order: SortOrder) -> List[T]:
    """Sort samples or groups; equal keys keep their input order."""
    if items and isinstance(items[0], QueryGroup):
        key = _group_sort_value(sort_by)
    else:
        key = _sample_sort_value(sort_by)
    return sorted(items, key=key, reverse=order is SortOrder.DESC)


def paginate(items: Sequence[T], page: int, page_size: int) -> Tuple[List[T], int, int]:
    """Return ``(page_items, total_pages, clamped_page)``."""
    total_pages = ceil(len(items) / page_size)
    page = max(1, min(page, total_pages))
    start = (page - 1) * page_size
    return list(items[start : start + page_size]), total_pages, page


def materialize(
    snapshot: Optional[Snapshot],
    view: ViewState,
    previous: Optional[Snapshot] = None,
) -> ViewPage:
    samples = snapshot.samples if snapshot is not None else ()
    filtered = filter_samples(samples, view)

    items: Sequence[Item]
    if view.group_by_fingerprint:
        groups = group_samples(filtered)
        if previous is not None:
            groups = attach_trends(groups, group_samples(previous.samples))
        items = groups
    else:
        items = filtered

    ordered = sort_items(items, view.sort_by, view.sort_order)
    page_items, total_pages, page = paginate(ordered, view.page, view.page_size)
    return ViewPage(
        items=page_items,
        total_items=len(ordered),
        total_pages=total_pages,
        page=page,
        grouped=view.group_by_fingerprint,
    )


def export_rows(snapshot: Optional[Snapshot], view: ViewState) -> List[Sample]:
    """The ungrouped, filtered and sorted samples behind the current view."""
    samples = snapshot.samples if snapshot is not None else ()
    return sort_items(filter_samples(samples, view), view.sort_by, view.sort_order)


def _distribution(counts: Counter) -> List[DistributionEntry]:
    # most_common keeps first-seen order for ties
    return [DistributionEntry(name=name, value=n) for name, n in counts.most_common()]


def derive_charts(snapshot: Optional[Snapshot]) -> ChartData:
    """Chart series over the full current sample set, ignoring view filters."""
    if snapshot is None or not snapshot.samples:
        return ChartData()
    samples = snapshot.samples

    by_model = _distribution(Counter(s.model for s in samples))
    by_operation = _distribution(Counter(s.operation for s in samples))

    hourly: Dict[Any, List[float]] = {}
    for s in samples:
        hourly.setdefault(hour_bucket(s.timestamp), []).append(s.duration_ms)
    buckets = [
        HourlyBucket(
            hour=hour,
            count=len(durations),
            avg_duration_ms=round_half_up(sum(durations) / len(durations)),
        )
        for hour, durations in sorted(hourly.items())
    ]
    return ChartData(
        by_model=by_model[: settings.chart_top_models],
        by_operation=by_operation,
        hourly=buckets[-settings.chart_hourly_buckets :],
    )


def filter_options(snapshot: Optional[Snapshot]) -> FilterOptions:
    if snapshot is None:
        return FilterOptions()
    return FilterOptions(
        models=sorted({s.model for s in snapshot.samples}),
        operations=sorted({s.operation for s in snapshot.samples}),
    )


def summarize(snapshot: Optional[Snapshot]) -> SnapshotSummary:
    if snapshot is None:
        return SnapshotSummary()
    return SnapshotSummary(
        total_queries=snapshot.total_queries,
        slow_queries_count=snapshot.slow_queries_count,
        average_query_time=snapshot.average_query_time,
        max_query_time=snapshot.max_query_time,
        slow_query_rate=snapshot.slow_query_rate,
        severity=severity_breakdown(snapshot.samples),
    )
