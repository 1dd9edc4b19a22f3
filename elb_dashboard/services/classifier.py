"""
SchemaClassifier - Decides which record schema an export encodes

Detection is structural: it looks at the first line and the header columns,
never at the filename.
"""

from typing import Iterable

from elb_dashboard.models.data_models import RecordSchema
from elb_dashboard.services.parser import ErrorSummaryParser, TabularParser

SLOW_QUERY_COLUMNS = frozenset({"time", "processing_time", "request_url"})
PERFORMANCE_COLUMNS = frozenset({"base_url", "min_rt"})


class SchemaClassifier:
    """
    Precedence (first match wins):
    1. error-summary first line -> ErrorSummary
    2. slow-query columns       -> SlowQuery
    3. performance columns      -> PerformanceMetrics
    4. anything else            -> LoadBalancerSummary
    """

    @staticmethod
    def classify_header(fields: Iterable[str]) -> RecordSchema:
        present = set(fields)
        if SLOW_QUERY_COLUMNS <= present:
            return RecordSchema.SLOW_QUERY
        if PERFORMANCE_COLUMNS <= present:
            return RecordSchema.PERFORMANCE_METRICS
        # Unrecognized tables fall through rather than being rejected
        return RecordSchema.LOAD_BALANCER_SUMMARY

    @staticmethod
    def classify(text: str) -> RecordSchema:
        if ErrorSummaryParser.looks_like_error_summary(text):
            return RecordSchema.ERROR_SUMMARY
        return SchemaClassifier.classify_header(TabularParser.header(text))
