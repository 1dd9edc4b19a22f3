"""Tests for services/parser.py"""

import csv

from elb_dashboard.services.parser import ErrorSummaryParser, TabularParser, first_line


class TestParseTable:
    def test_header_keys_and_trimmed_values(self):
        rows = TabularParser.parse_table(" a , b \n 1 ,  two \n")
        assert rows == [{"a": "1", "b": "two"}]

    def test_empty_lines_skipped(self):
        rows = TabularParser.parse_table("\n\na,b\n\n1,2\n\n3,4\n")
        assert rows == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]

    def test_quoted_commas_and_newlines(self):
        text = 'a,b\n"x, y","line1\nline2"\n'
        rows = TabularParser.parse_table(text)
        assert rows == [{"a": "x, y", "b": "line1\nline2"}]

    def test_empty_header_gives_no_rows(self):
        assert TabularParser.parse_table(",,\n1,2,3\n") == []

    def test_blank_text_gives_no_rows(self):
        assert TabularParser.parse_table("") == []
        assert TabularParser.parse_table("\n   \n") == []

    def test_short_row_lacks_missing_keys(self):
        rows = TabularParser.parse_table("a,b,c\n1,2\n")
        assert rows == [{"a": "1", "b": "2"}]

    def test_surplus_fields_discarded(self):
        rows = TabularParser.parse_table("a\n1,2\n")
        assert rows == [{"a": "1"}]

    def test_crlf_and_bom(self):
        rows = TabularParser.parse_table("\ufeffa,b\r\n1,2\r\n")
        assert rows == [{"a": "1", "b": "2"}]

    def test_header(self):
        assert TabularParser.header("\n x ,y\n1,2") == ["x", "y"]
        assert TabularParser.header("") == []


class TestOversizedInput:
    def test_field_longer_than_csv_default_limit(self):
        body = "x" * 200_000
        rows = TabularParser.parse_table(f"url,n\n/api/{body},1\n")
        assert rows == [{"url": f"/api/{body}", "n": "1"}]

    def test_unterminated_quote_keeps_earlier_rows(self):
        text = 'a,b\n1,2\n"open,3\n' + "4,5\n" * 50_000
        rows = TabularParser.parse_table(text)
        assert rows[0] == {"a": "1", "b": "2"}
        assert len(rows) == 2
        assert rows[1]["a"].startswith("open,3\n4,5")
        assert "b" not in rows[1]

    def test_rejected_record_ends_table(self, caplog):
        previous = csv.field_size_limit(16)
        try:
            rows = TabularParser.parse_table("a,b\n1,2\n" + "x" * 50 + ",3\n4,5\n")
        finally:
            csv.field_size_limit(previous)
        assert rows == [{"a": "1", "b": "2"}]
        assert "Stopped reading table" in caplog.text


class TestErrorSummaryParser:
    def test_first_line_skips_blanks(self):
        assert first_line("\n\n  42 \"x\"  \nmore") == '42 "x"'

    def test_sniff_quoted(self):
        assert ErrorSummaryParser.looks_like_error_summary('42 "disk full"\n')

    def test_sniff_json(self):
        assert ErrorSummaryParser.looks_like_error_summary('  7 {"code":500}\n')

    def test_sniff_rejects_csv_header(self):
        assert not ErrorSummaryParser.looks_like_error_summary("count,message\n1,x\n")

    def test_sniff_rejects_plain_text_first_line(self):
        assert not ErrorSummaryParser.looks_like_error_summary("3 plain words\n")

    def test_quoted_message(self):
        assert ErrorSummaryParser.parse_line('42 "disk full"') == (42, "disk full")

    def test_json_message_kept_verbatim(self):
        assert ErrorSummaryParser.parse_line('7 {"code":500}') == (7, '{"code":500}')

    def test_plain_message_trimmed(self):
        assert ErrorSummaryParser.parse_line("  3   plain words   ") == (3, "plain words")

    def test_quote_followed_by_text_falls_back_to_plain(self):
        assert ErrorSummaryParser.parse_line('5 "a" trailing') == (5, '"a" trailing')

    def test_non_matching_line(self):
        assert ErrorSummaryParser.parse_line("not a valid line") is None
        assert ErrorSummaryParser.parse_line("") is None
