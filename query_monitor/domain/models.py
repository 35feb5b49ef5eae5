from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class TrendDirection(str, Enum):
    SLOWING = "slowing"
    SPEEDING = "speeding"


class SortKey(str, Enum):
    DURATION = "duration"
    TIMESTAMP = "timestamp"
    MODEL = "model"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Severity(str, Enum):
    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH = "high"
    CRITICAL = "critical"


class Sample(BaseModel):
    """One recorded slow-query event as reported by the backend collector."""

    timestamp: datetime
    model: str
    operation: str
    duration_ms: float = Field(..., ge=0, alias="duration")
    query: Any = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Snapshot(BaseModel):
    """Result of one successful fetch of the backend query statistics."""

    samples: Tuple[Sample, ...] = Field(default=(), alias="slowQueries")
    total_queries: int = Field(0, ge=0, alias="totalQueries")
    slow_queries_count: int = Field(0, ge=0, alias="slowQueriesCount")
    average_query_time: float = Field(0.0, alias="averageQueryTime")
    max_query_time: float = Field(0.0, alias="maxQueryTime")
    threshold_ms: Optional[float] = Field(None, alias="threshold")
    fetched_at: Optional[datetime] = Field(None, alias="fetchedAt")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @computed_field  # type: ignore[misc]
    @property
    def slow_query_rate(self) -> float:
        """Percentage of observed queries that crossed the slow threshold."""
        if not self.total_queries:
            return 0.0
        return round(self.slow_queries_count / self.total_queries * 100, 2)


class Trend(BaseModel):
    change_percent: int
    direction: TrendDirection

    model_config = ConfigDict(frozen=True)


class QueryGroup(BaseModel):
    """Aggregate over all samples sharing one fingerprint."""

    fingerprint: str
    model: str
    operation: str
    samples: Tuple[Sample, ...]
    count: int = Field(..., ge=1)
    avg_duration_ms: float
    p95_duration_ms: float
    max_duration_ms: float
    min_duration_ms: float
    trend: Optional[Trend] = None

    model_config = ConfigDict(frozen=True)

    @computed_field  # type: ignore[misc]
    @property
    def latest_timestamp(self) -> datetime:
        return max(s.timestamp for s in self.samples)


class ViewState(BaseModel):
    """Caller-owned filters, ordering and paging for one materialization."""

    search: str = ""
    model: Optional[str] = None
    operation: Optional[str] = None
    sort_by: SortKey = SortKey.DURATION
    sort_order: SortOrder = SortOrder.DESC
    group_by_fingerprint: bool = True
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=500)

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("model", "operation")
    @classmethod
    def _all_means_unfiltered(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "all":
            return None
        return value


class ViewPage(BaseModel):
    items: List[Union[QueryGroup, Sample]]
    total_items: int
    total_pages: int
    page: int
    grouped: bool


class DistributionEntry(BaseModel):
    name: str
    value: int


class HourlyBucket(BaseModel):
    hour: datetime
    count: int
    avg_duration_ms: int


class ChartData(BaseModel):
    by_model: List[DistributionEntry] = Field(default_factory=list)
    by_operation: List[DistributionEntry] = Field(default_factory=list)
    hourly: List[HourlyBucket] = Field(default_factory=list)


class FilterOptions(BaseModel):
    models: List[str] = Field(default_factory=list)
    operations: List[str] = Field(default_factory=list)


class SnapshotSummary(BaseModel):
    total_queries: int = 0
    slow_queries_count: int = 0
    average_query_time: float = 0.0
    max_query_time: float = 0.0
    slow_query_rate: float = 0.0
    severity: Dict[Severity, int] = Field(default_factory=dict)


class MonitorState(BaseModel):
    loading: bool
    snapshot: Optional[Snapshot] = None
    previous_snapshot: Optional[Snapshot] = None
    error: Optional[str] = None
    stale: bool = False
    auto_refresh_active: bool = False
    last_fetch_at: Optional[datetime] = None


class ExportPayload(BaseModel):
    content: str
    filename: str
    mime_type: str
