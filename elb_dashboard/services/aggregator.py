"""
Aggregator Class - Computes the derived views

This module turns the stored records into distributions, histograms,
percentile curves and sorted/filtered/paginated tables. Nothing here is
stored; every view is recomputed from the records it is given.
"""

import json
import math
import re
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from elb_dashboard.config import MIN_GRAPH_REQUESTS, PAGE_SIZE, SEVERITY_THRESHOLDS_MS, SLOW_BUCKET_SECONDS
from elb_dashboard.models.data_models import (
    ChartDatum,
    EndpointInfo,
    ErrorSummaryEntry,
    JsonProbe,
    LoadBalancerSummaryEntry,
    Page,
    PercentilePoint,
    PerformanceMetricsEntry,
    RecordSchema,
    ScatterPoint,
    SeverityTier,
    SlowQueryEntry,
    SortDirection,
    TimeBucketRow,
)
from elb_dashboard.services.storage import DatasetStore
from elb_dashboard.utils.helpers import display_path, parse_ts

T = TypeVar("T")

UNKNOWN = "unknown"
ALL_ENDPOINTS = "all"

BUCKET_BOUND_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)")

PERFORMANCE_FIELDS: Dict[str, Callable[[PerformanceMetricsEntry], Any]] = {
    "base_url": lambda e: e.base_url,
    "request_verb": lambda e: e.verb,
    "min_rt": lambda e: e.min_rt,
    "avg_rt": lambda e: e.avg_rt,
    "P25": lambda e: e.P25,
    "P50": lambda e: e.P50,
    "P60": lambda e: e.P60,
    "P75": lambda e: e.P75,
    "P90": lambda e: e.P90,
    "P95": lambda e: e.P95,
    "P100": lambda e: e.max_rt,  # no literal P100 upstream; max_rt stands in
    "total": lambda e: e.total,
    "requests": lambda e: e.requests,
}

# Metrics selectable for the scatter plot
PERFORMANCE_METRICS = ("avg_rt", "P25", "P50", "P60", "P75", "P90", "P95", "P100")


def _slow_query_time(e: SlowQueryEntry) -> str:
    ts = parse_ts(e.timestamp)
    return ts.isoformat() if ts else e.timestamp


SLOW_QUERY_FIELDS: Dict[str, Callable[[SlowQueryEntry], Any]] = {
    "time": _slow_query_time,
    "processing_time": lambda e: e.processing_time_seconds,
    "request_url": lambda e: e.request_url,
    "pid": lambda e: e.player_id,
    "elb_status_code": lambda e: e.status_code,
}

ERROR_SUMMARY_FIELDS: Dict[str, Callable[[ErrorSummaryEntry], Any]] = {
    "count": lambda e: e.count,
    "message": lambda e: e.message,
}


# ──────────────────────────────────────────────────────────────────────────────
# Small pure helpers
# ──────────────────────────────────────────────────────────────────────────────


def bucket_lower_bound(label: str) -> Optional[float]:
    """Leading number before the first "-" ("0.3-1" -> 0.3, "30+" -> 30)"""
    m = BUCKET_BOUND_RE.match(label.split("-", 1)[0])
    return float(m.group(1)) if m else None


def severity_tier(p95: float) -> SeverityTier:
    """Classify a P95 latency (ms); tier bounds are inclusive"""
    for tier, upper in zip(SeverityTier, SEVERITY_THRESHOLDS_MS):
        if p95 <= upper:
            return tier
    return SeverityTier.CRITICAL


def compare_text(a: str, b: str) -> int:
    """Locale-style ordering: case-insensitive first, exact text breaks ties"""
    ka, kb = (a.casefold(), a), (b.casefold(), b)
    return (ka > kb) - (ka < kb)


def compare_values(a: Any, b: Any) -> int:
    if isinstance(a, str) or isinstance(b, str):
        return compare_text(str(a), str(b))
    diff = a - b
    return (diff > 0) - (diff < 0)


def _reject_constant(name: str) -> None:
    raise ValueError(f"invalid JSON constant {name}")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def try_parse_json(text: str) -> JsonProbe:
    """
    Detect a JSON message: either a literal object/array, or a double-quoted
    string whose content is itself an object/array. Any failure means "not JSON".
    """
    try:
        if text.startswith(("{", "[")) and text.strip():
            return JsonProbe(is_json=True, parsed=_loads(text))
        if text.startswith('"') and text.endswith('"'):
            unescaped = _loads(text)
            if isinstance(unescaped, str) and unescaped.startswith(("{", "[")):
                return JsonProbe(is_json=True, parsed=_loads(unescaped))
    except (ValueError, RecursionError):
        return JsonProbe(is_json=False)
    return JsonProbe(is_json=False)


def pretty_message(text: str) -> str:
    """Indented JSON for JSON messages, the raw text otherwise"""
    probe = try_parse_json(text)
    if not probe.is_json:
        return text
    return json.dumps(probe.parsed, indent=2, ensure_ascii=False)


class Aggregator:
    """
    Computes derived views over a DatasetStore's records.
    Responsibilities:
    - Status/verb distributions and time-bucket histograms
    - Slow-endpoint detection
    - Percentile curves, scatter points and severity colours
    - Sorting, filtering and pagination of tables
    """

    def __init__(self, dataset_store: DatasetStore):
        self.store = dataset_store

    def dataset(self, schema: RecordSchema) -> List[Any]:
        """Records currently loaded for a schema"""
        records = self.store.records(schema)
        if records is None:
            raise LookupError(f"No {schema.value} dataset loaded")
        return records

    # ──────────────────────────────────────────────────────────────────────
    # Load balancer summary
    # ──────────────────────────────────────────────────────────────────────

    @staticmethod
    def filter_by_endpoint(
        entries: List[LoadBalancerSummaryEntry], endpoint: Optional[str]
    ) -> List[LoadBalancerSummaryEntry]:
        """Keep one endpoint ("url|verb"); None or "all" keeps everything"""
        if not endpoint or endpoint == ALL_ENDPOINTS:
            return list(entries)
        url, _, verb = endpoint.rpartition("|")
        return [e for e in entries if e.normalized_url == url and e.verb == verb]

    @staticmethod
    def _distribution(entries: List[LoadBalancerSummaryEntry], key: Callable[[Any], str]) -> List[ChartDatum]:
        totals: Dict[str, int] = {}
        for e in entries:
            k = key(e) or UNKNOWN
            totals[k] = totals.get(k, 0) + (e.count or 0)
        return [ChartDatum(name=k, value=v) for k, v in totals.items()]

    @staticmethod
    def status_distribution(entries: List[LoadBalancerSummaryEntry]) -> List[ChartDatum]:
        return Aggregator._distribution(entries, lambda e: e.status_code)

    @staticmethod
    def verb_distribution(entries: List[LoadBalancerSummaryEntry]) -> List[ChartDatum]:
        return Aggregator._distribution(entries, lambda e: e.verb)

    @staticmethod
    def time_bucket_histogram(entries: List[LoadBalancerSummaryEntry]) -> List[TimeBucketRow]:
        """
        One row per time bucket with a count per status code and a total,
        ordered by the bucket's lower bound; "unknown" always sorts last.
        """
        grouped: Dict[str, Dict[str, int]] = {}
        for e in entries:
            counts = grouped.setdefault(e.time_bucket or UNKNOWN, {})
            counts[e.status_code] = counts.get(e.status_code, 0) + e.count

        rows = [TimeBucketRow(name=b, counts=c, total=sum(c.values())) for b, c in grouped.items()]

        def order(row: TimeBucketRow):
            bound = bucket_lower_bound(row.name)
            return (row.name == UNKNOWN, bound is None, bound if bound is not None else 0.0)

        rows.sort(key=order)
        return rows

    @staticmethod
    def status_codes(entries: List[LoadBalancerSummaryEntry]) -> List[str]:
        """Sorted status codes present (one histogram series each)"""
        return sorted({e.status_code for e in entries})

    @staticmethod
    def endpoints(entries: List[LoadBalancerSummaryEntry]) -> List[EndpointInfo]:
        """
        Distinct (url, verb) endpoints, flagged slow when any of their time
        buckets starts at SLOW_BUCKET_SECONDS or more.
        """
        found: Dict[tuple, EndpointInfo] = {}
        for e in entries:
            info = found.setdefault(
                (e.normalized_url, e.verb),
                EndpointInfo(normalized_url=e.normalized_url, verb=e.verb, has_slow_requests=False),
            )
            bound = bucket_lower_bound(e.time_bucket)
            if bound is not None and bound >= SLOW_BUCKET_SECONDS:
                info.has_slow_requests = True

        return sorted(found.values(), key=cmp_to_key(lambda a, b: compare_text(a.label, b.label)))

    # ──────────────────────────────────────────────────────────────────────
    # Performance metrics
    # ──────────────────────────────────────────────────────────────────────

    @staticmethod
    def percentile_curve(entry: PerformanceMetricsEntry) -> List[PercentilePoint]:
        return [
            PercentilePoint("P25", entry.P25, 25),
            PercentilePoint("P50", entry.P50, 50),
            PercentilePoint("P60", entry.P60, 60),
            PercentilePoint("P75", entry.P75, 75),
            PercentilePoint("P90", entry.P90, 90),
            PercentilePoint("P95", entry.P95, 95),
            PercentilePoint("P100", entry.max_rt, 100),
        ]

    @staticmethod
    def filter_performance(
        entries: List[PerformanceMetricsEntry],
        endpoint: str = "",
        method: str = "",
    ) -> List[PerformanceMetricsEntry]:
        """Case-insensitive substring match on base_url, exact verb match"""
        needle = endpoint.lower()
        return [
            e for e in entries
            if needle in e.base_url.lower() and (not method or e.verb == method)
        ]

    @staticmethod
    def sort_performance(
        entries: List[PerformanceMetricsEntry],
        field: str = "P95",
        direction: Union[str, SortDirection] = SortDirection.DESC,
    ) -> List[PerformanceMetricsEntry]:
        if field not in PERFORMANCE_FIELDS:
            raise ValueError(f"Unknown sort field: {field}")
        return Aggregator.sort_entries(entries, PERFORMANCE_FIELDS[field], direction)

    @staticmethod
    def scatter_points(entries: List[PerformanceMetricsEntry], metric: str = "P100") -> List[ScatterPoint]:
        if metric not in PERFORMANCE_METRICS:
            raise ValueError(f"Unknown metric: {metric}")
        value_of = PERFORMANCE_FIELDS[metric]
        return [
            ScatterPoint(
                name=display_path(e.base_url),
                verb=e.verb,
                metric=value_of(e),
                p95=e.P95,
                requests=e.requests,
                color=severity_tier(e.P95).color,
            )
            for e in entries
        ]

    @staticmethod
    def curve_entries(entries: List[PerformanceMetricsEntry], show_all: bool = False) -> List[PerformanceMetricsEntry]:
        """Entries worth a percentile curve (low-traffic endpoints hidden by default)"""
        if show_all:
            return list(entries)
        return [e for e in entries if e.requests >= MIN_GRAPH_REQUESTS]

    # ──────────────────────────────────────────────────────────────────────
    # Slow queries / error summary tables
    # ──────────────────────────────────────────────────────────────────────

    @staticmethod
    def search_slow_queries(entries: List[SlowQueryEntry], term: str = "") -> List[SlowQueryEntry]:
        needle = term.lower()
        return [
            e for e in entries
            if needle in e.request_url.lower()
            or needle in e.player_id.lower()
            or term in e.status_code
        ]

    @staticmethod
    def search_errors(entries: List[ErrorSummaryEntry], term: str = "") -> List[ErrorSummaryEntry]:
        needle = term.lower()
        return [e for e in entries if needle in e.message.lower() or term in str(e.count)]

    # ──────────────────────────────────────────────────────────────────────
    # Generic sort / paginate
    # ──────────────────────────────────────────────────────────────────────

    @staticmethod
    def sort_entries(
        entries: Sequence[T],
        key: Callable[[T], Any],
        direction: Union[str, SortDirection] = SortDirection.ASC,
    ) -> List[T]:
        """Stable sort; "desc" negates the comparator rather than swapping it"""
        sign = 1 if SortDirection(direction) == SortDirection.ASC else -1

        def compare(a: T, b: T) -> int:
            return sign * compare_values(key(a), key(b))

        return sorted(entries, key=cmp_to_key(compare))

    @staticmethod
    def paginate(items: Sequence[T], page: int = 1, page_size: int = PAGE_SIZE) -> Page[T]:
        """Slice out a 1-based page; out-of-range pages are clamped"""
        total = len(items)
        total_pages = math.ceil(total / page_size) if total else 0
        page = min(max(page, 1), max(total_pages, 1))
        start = (page - 1) * page_size
        return Page(
            items=list(items[start:start + page_size]),
            page=page,
            page_size=page_size,
            total_items=total,
            total_pages=total_pages,
        )
