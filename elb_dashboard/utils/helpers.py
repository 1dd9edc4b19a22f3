"""
Helper Functions

This module contains utility functions used throughout the application.
"""

import math
from datetime import datetime, timezone
from typing import Any, Optional, Union

from dateutil import parser as dtparser


def parse_ts(x: Any) -> Optional[datetime]:
    """Parse timestamp from various formats"""
    if not x:
        return None
    try:
        dt = dtparser.isoparse(str(x))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def safe_float(x: Any) -> Optional[float]:
    """Convert to a finite float; blanks, NaN and infinities give None"""
    if x is None:
        return None
    s = str(x).strip()
    if not s:
        return None
    try:
        value = float(s)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def safe_count(x: Any) -> Optional[Union[int, float]]:
    """Finite number, as an int when whole ("12.0" gives 12, "2.5" stays 2.5)"""
    value = safe_float(x)
    if value is None:
        return None
    return int(value) if value.is_integer() else value


def field_text(row: dict, name: str) -> str:
    """Trimmed string value of a parsed row field ("" when absent)"""
    value = row.get(name)
    return value.strip() if isinstance(value, str) else ""


def display_path(url: str) -> str:
    """Drop scheme and host: "https://host/api/x" -> "api/x" """
    return "/".join(url.split("/")[3:])
