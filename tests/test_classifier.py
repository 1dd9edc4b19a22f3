"""Tests for services/classifier.py"""

from elb_dashboard.models.data_models import RecordSchema
from elb_dashboard.services.classifier import SchemaClassifier


class TestClassify:
    def test_load_balancer(self, load_balancer_csv):
        assert SchemaClassifier.classify(load_balancer_csv) == RecordSchema.LOAD_BALANCER_SUMMARY

    def test_performance(self, performance_csv):
        assert SchemaClassifier.classify(performance_csv) == RecordSchema.PERFORMANCE_METRICS

    def test_slow_query(self, slow_query_csv):
        assert SchemaClassifier.classify(slow_query_csv) == RecordSchema.SLOW_QUERY

    def test_error_summary(self, error_summary_txt):
        assert SchemaClassifier.classify(error_summary_txt) == RecordSchema.ERROR_SUMMARY

    def test_slow_query_wins_over_later_performance_columns(self):
        text = "time,processing_time,request_url,elb_status_code,base_url,min_rt\n"
        assert SchemaClassifier.classify(text) == RecordSchema.SLOW_QUERY

    def test_partial_slow_query_columns_are_not_enough(self):
        text = "time,processing_time,base_url,min_rt\n"
        assert SchemaClassifier.classify(text) == RecordSchema.PERFORMANCE_METRICS

    def test_unrecognized_table_falls_back_to_load_balancer(self):
        assert SchemaClassifier.classify("foo,bar\n1,2\n") == RecordSchema.LOAD_BALANCER_SUMMARY

    def test_empty_text_falls_back_to_load_balancer(self):
        assert SchemaClassifier.classify("") == RecordSchema.LOAD_BALANCER_SUMMARY

    def test_header_whitespace_ignored(self):
        text = " base_url , min_rt \n"
        assert SchemaClassifier.classify(text) == RecordSchema.PERFORMANCE_METRICS


class TestClassifyHeader:
    def test_field_sets(self):
        assert SchemaClassifier.classify_header(["request_url", "time", "processing_time"]) == RecordSchema.SLOW_QUERY
        assert SchemaClassifier.classify_header(["min_rt", "base_url"]) == RecordSchema.PERFORMANCE_METRICS
        assert SchemaClassifier.classify_header([]) == RecordSchema.LOAD_BALANCER_SUMMARY
