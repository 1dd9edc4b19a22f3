"""
Record Builders - Convert parsed rows into validated typed records

Every builder is a filter-then-map over its input: rows with a missing
required text field or a non-finite required number are dropped, and the
number dropped is reported alongside the records that validated.
"""

import logging
import re
from typing import Callable, Dict, List, Optional

from elb_dashboard.models.data_models import (
    BuildResult,
    ErrorSummaryEntry,
    LoadBalancerSummaryEntry,
    PerformanceMetricsEntry,
    RecordSchema,
    SlowQueryEntry,
)
from elb_dashboard.services.parser import ErrorSummaryParser, TabularParser
from elb_dashboard.utils.helpers import field_text, safe_count, safe_float

logger = logging.getLogger(__name__)

PLAYER_ID_RE = re.compile(r"/(\d+)(?:/[^/]+)?$")

PERCENTILE_COLUMNS = ("P25", "P50", "P60", "P75", "P90", "P95")

Row = Dict[str, str]


def extract_player_id(url: str) -> str:
    """Trailing numeric path segment, optionally followed by one more segment"""
    m = PLAYER_ID_RE.search(url)
    return m.group(1) if m else ""


def _build(rows: List[Row], convert: Callable[[Row], Optional[object]]) -> BuildResult:
    records = []
    for row in rows:
        record = convert(row)
        if record is not None:
            records.append(record)
    return BuildResult(records=records, dropped=len(rows) - len(records))


# ──────────────────────────────────────────────────────────────────────────────
# Row converters (None = drop the row)
# ──────────────────────────────────────────────────────────────────────────────


def load_balancer_entry(row: Row) -> Optional[LoadBalancerSummaryEntry]:
    url = field_text(row, "normalized_url")
    status = field_text(row, "elb_status_code")
    verb = field_text(row, "request_verb")
    bucket = field_text(row, "processing_time_bucket")
    if not (url and status and verb and bucket):
        return None

    count = safe_count(row.get("count"))
    total_requests = safe_count(row.get("total_requests"))
    percentage = safe_float(row.get("percentage"))
    if count is None or total_requests is None or percentage is None:
        return None

    return LoadBalancerSummaryEntry(
        normalized_url=url,
        status_code=status,
        verb=verb,
        time_bucket=bucket,
        count=count,
        total_requests=total_requests,
        percentage=percentage,
    )


def performance_entry(row: Row) -> Optional[PerformanceMetricsEntry]:
    base_url = field_text(row, "base_url")
    if not base_url:
        return None

    # Every statistic is required, not just min/max/avg: the views sort, plot
    # and tier on any percentile, so a row missing one cannot be shown.
    numbers: Dict[str, float] = {}
    for name in ("min_rt", "max_rt", "avg_rt", "total") + PERCENTILE_COLUMNS:
        value = safe_float(row.get(name))
        if value is None:
            return None
        numbers[name] = value

    requests = safe_count(row.get("requests"))
    if requests is None:
        return None

    return PerformanceMetricsEntry(
        base_url=base_url,
        verb=field_text(row, "request_verb"),
        requests=requests,
        **numbers,
    )


def slow_query_entry(row: Row) -> Optional[SlowQueryEntry]:
    timestamp = field_text(row, "time")
    url = field_text(row, "request_url")
    status = field_text(row, "elb_status_code")
    processing_time = safe_float(row.get("processing_time"))
    if not (timestamp and url and status) or processing_time is None:
        return None

    return SlowQueryEntry(
        timestamp=timestamp,
        processing_time_seconds=processing_time,
        request_url=url,
        player_id=extract_player_id(url),
        status_code=status,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Builders
# ──────────────────────────────────────────────────────────────────────────────


def build_load_balancer(rows: List[Row]) -> BuildResult:
    return _build(rows, load_balancer_entry)


def build_performance(rows: List[Row]) -> BuildResult:
    return _build(rows, performance_entry)


def build_slow_queries(rows: List[Row]) -> BuildResult:
    return _build(rows, slow_query_entry)


def build_error_summary(lines: List[str]) -> BuildResult:
    """Error summaries are parsed line by line, never as CSV"""
    records = []
    for line in lines:
        parsed = ErrorSummaryParser.parse_line(line)
        if parsed is not None:
            count, message = parsed
            records.append(ErrorSummaryEntry(count=count, message=message))
    return BuildResult(records=records, dropped=len(lines) - len(records))


ROW_BUILDERS = {
    RecordSchema.LOAD_BALANCER_SUMMARY: build_load_balancer,
    RecordSchema.PERFORMANCE_METRICS: build_performance,
    RecordSchema.SLOW_QUERY: build_slow_queries,
}


def build_records(schema: RecordSchema, text: str) -> BuildResult:
    """Build the typed records for text already classified as `schema`"""
    if schema == RecordSchema.ERROR_SUMMARY:
        result = build_error_summary(ErrorSummaryParser.lines(text))
    else:
        result = ROW_BUILDERS[schema](TabularParser.parse_table(text))

    if result.dropped:
        logger.debug("%s: dropped %d invalid rows", schema.value, result.dropped)
    return result
