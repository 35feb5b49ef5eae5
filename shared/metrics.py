"""Prometheus metric constructors shared by services.

Metric names are lowercase snake_case, prefixed with the owning service
(dashes in the service name become underscores). Everything registers on the
default registry, which ``generate_latest()`` exposes.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from prometheus_client import Counter, Gauge, Histogram

_VALID_NAME = re.compile(r"^[a-z_][a-z0-9_]*$")


def metric_name(name: str, service: str | None = None) -> str:
    if service:
        prefix = service.replace("-", "_") + "_"
        if not name.startswith(prefix):
            name = prefix + name
    if not _VALID_NAME.match(name):
        raise ValueError(f"Invalid metric name {name!r}: use lowercase snake_case.")
    return name


def _build(
    metric_cls: Any,
    name: str,
    documentation: str,
    service: str | None,
    labelnames: Sequence[str],
    **kwargs: Any,
):
    return metric_cls(
        metric_name(name, service), documentation, labelnames=tuple(labelnames), **kwargs
    )


def get_counter(
    name: str,
    documentation: str,
    service: str | None = None,
    labelnames: Sequence[str] = (),
) -> Counter:
    return _build(Counter, name, documentation, service, labelnames)


def get_histogram(
    name: str,
    documentation: str,
    service: str | None = None,
    buckets: Sequence[float] | None = None,
    labelnames: Sequence[str] = (),
) -> Histogram:
    extra = {} if buckets is None else {"buckets": tuple(buckets)}
    return _build(Histogram, name, documentation, service, labelnames, **extra)


def get_gauge(
    name: str,
    documentation: str,
    service: str | None = None,
    labelnames: Sequence[str] = (),
) -> Gauge:
    return _build(Gauge, name, documentation, service, labelnames)


__all__ = ["metric_name", "get_counter", "get_histogram", "get_gauge"]
