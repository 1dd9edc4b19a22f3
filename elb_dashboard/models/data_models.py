"""
Data Models (DTOs - Data Transfer Objects)

This module contains the record schemas, the typed entries built from each
schema, and the derived value objects produced by the aggregation views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar


class RecordSchema(str, Enum):
    """The four record shapes a log export can be classified into"""
    LOAD_BALANCER_SUMMARY = "loadbalancer"
    PERFORMANCE_METRICS = "performance"
    SLOW_QUERY = "slowqueries"
    ERROR_SUMMARY = "errorsummary"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SeverityTier(int, Enum):
    """P95 latency classes, lowest (fastest) first"""
    EXCELLENT = 1
    GOOD = 2
    FAIR = 3
    SLOW = 4
    CRITICAL = 5

    @property
    def color(self) -> str:
        return SEVERITY_COLORS[self]


SEVERITY_COLORS = {
    SeverityTier.EXCELLENT: "#22c55e",
    SeverityTier.GOOD: "#3b82f6",
    SeverityTier.FAIR: "#eab308",
    SeverityTier.SLOW: "#f97316",
    SeverityTier.CRITICAL: "#ef4444",
}


# ──────────────────────────────────────────────────────────────────────────────
# Records
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class LoadBalancerSummaryEntry:
    """One (endpoint, status, verb, time bucket) count row"""
    normalized_url: str
    status_code: str
    verb: str
    time_bucket: str
    count: float  # int when whole
    total_requests: float
    percentage: float  # display only, never recomputed


@dataclass
class PerformanceMetricsEntry:
    """Response-time statistics (ms) for one endpoint"""
    base_url: str
    verb: str
    min_rt: float
    max_rt: float
    avg_rt: float
    P25: float
    P50: float
    P60: float
    P75: float
    P90: float
    P95: float
    total: float
    requests: float


@dataclass
class SlowQueryEntry:
    """A single request that exceeded the slow threshold"""
    timestamp: str
    processing_time_seconds: float
    request_url: str
    player_id: str
    status_code: str


@dataclass
class ErrorSummaryEntry:
    """Occurrence count for one error message (raw text or JSON literal)"""
    count: int
    message: str


Record = TypeVar("Record")
T = TypeVar("T")


@dataclass
class BuildResult(Generic[Record]):
    """Rows that validated, plus how many were dropped"""
    records: List[Record]
    dropped: int = 0


# ──────────────────────────────────────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class DatasetSlot:
    records: List[Any]
    filename: str
    loaded_at: datetime


@dataclass
class StoreStatus:
    """Health check response"""
    status: str
    active_schemas: List[str]
    file_names: Dict[str, str]
    record_counts: Dict[str, int]


@dataclass
class IngestResult:
    """Outcome of classifying, building and storing one file"""
    filename: str
    schema: RecordSchema
    accepted: int
    dropped: int


# ──────────────────────────────────────────────────────────────────────────────
# Derived views
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class ChartDatum:
    name: str
    value: float


@dataclass
class TimeBucketRow:
    """One histogram bar: counts per status code within a time bucket"""
    name: str
    counts: Dict[str, float] = field(default_factory=dict)
    total: float = 0

    def as_dict(self) -> Dict[str, Any]:
        # counts stay nested so a status code can never shadow "name" or "total"
        return {"name": self.name, "counts": dict(self.counts), "total": self.total}


@dataclass
class EndpointInfo:
    normalized_url: str
    verb: str
    has_slow_requests: bool

    @property
    def key(self) -> str:
        return f"{self.normalized_url}|{self.verb}"

    @property
    def label(self) -> str:
        slow = " (Slow)" if self.has_slow_requests else ""
        return f"{self.verb} {self.normalized_url}{slow}"


@dataclass
class PercentilePoint:
    name: str
    value: float
    position: int


@dataclass
class ScatterPoint:
    name: str
    verb: str
    metric: float
    p95: float
    requests: float
    color: str


@dataclass
class Page(Generic[T]):
    """One page of a filtered table"""
    items: List[T]
    page: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def first_index(self) -> int:
        """1-based index of the first item shown (0 when empty)"""
        return (self.page - 1) * self.page_size + 1 if self.items else 0

    @property
    def last_index(self) -> int:
        return min(self.page * self.page_size, self.total_items)


@dataclass
class JsonProbe:
    is_json: bool
    parsed: Optional[Any] = None
