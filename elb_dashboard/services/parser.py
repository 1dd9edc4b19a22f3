"""
Parsers - Turn raw export text into rows

TabularParser handles the delimited CSV exports; ErrorSummaryParser handles
the delimiter-less "<count> <message>" error summaries.
"""

import csv
import io
import logging
import re
from typing import Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Exports carry whole request URLs and JSON bodies in single fields, well past
# the csv module's 128 KiB default. The limit is a C long.
csv.field_size_limit(2**31 - 1)

ERROR_SUMMARY_SNIFF = (
    re.compile(r'^\s*\d+\s+".*"$'),
    re.compile(r"^\s*\d+\s+\{.*\}$"),
)
ERROR_SUMMARY_LINE = re.compile(r'^\s*(\d+)\s+(?:"([^"]+)"|(\{.*\})|(.+))$')


def first_line(text: str) -> str:
    """First non-empty line, trimmed ("" when there is none)"""
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


class TabularParser:
    """
    Splits comma-delimited text into header-keyed rows.
    Responsibilities:
    - Use the first non-empty line as the header
    - Skip empty lines
    - Trim header names and values
    """

    @staticmethod
    def _records(text: str) -> Iterator[List[str]]:
        reader = csv.reader(io.StringIO(text.lstrip("\ufeff"), newline=""))
        try:
            for record in reader:
                if not record or (len(record) == 1 and not record[0].strip()):
                    continue
                yield record
        except csv.Error as exc:
            logger.warning("Stopped reading table at line %d: %s", reader.line_num, exc)

    @staticmethod
    def header(text: str) -> List[str]:
        """Trimmed header fields, or [] when the text has no header"""
        for record in TabularParser._records(text):
            fields = [name.strip() for name in record]
            return fields if any(fields) else []
        return []

    @staticmethod
    def parse_table(text: str) -> List[Dict[str, str]]:
        """
        Parse text into rows mapping header name -> trimmed value.
        Short rows lack the missing keys; surplus fields are discarded.
        A record the csv reader rejects ends the table; earlier rows are kept.
        """
        records = TabularParser._records(text)
        header = next(records, None)
        if header is None:
            return []
        names = [name.strip() for name in header]
        if not any(names):
            return []

        rows: List[Dict[str, str]] = []
        for record in records:
            row = {}
            for name, value in zip(names, record):
                row[name] = value.strip()
            rows.append(row)
        return rows


class ErrorSummaryParser:
    """Parses `<count> "<text>"` / `<count> {json}` / `<count> text` lines"""

    @staticmethod
    def looks_like_error_summary(text: str) -> bool:
        line = first_line(text)
        return any(p.match(line) for p in ERROR_SUMMARY_SNIFF)

    @staticmethod
    def parse_line(line: str) -> Optional[Tuple[int, str]]:
        """Return (count, message) or None if the line does not match"""
        m = ERROR_SUMMARY_LINE.match(line)
        if not m:
            return None
        count, quoted, json_literal, plain = m.groups()
        if quoted:
            return int(count), quoted.strip()
        if json_literal:
            return int(count), json_literal
        return int(count), plain.strip()

    @staticmethod
    def lines(text: str) -> List[str]:
        return text.strip().splitlines()
