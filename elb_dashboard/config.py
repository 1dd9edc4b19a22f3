"""
Configuration

Environment-driven settings plus the fixed constants shared by the
ingest pipeline and the aggregation views.
"""

import os

# ──────────────────────────────────────────────────────────────────────────────
# Environment
# ──────────────────────────────────────────────────────────────────────────────

API_PREFIX = os.getenv("API_PREFIX", "/api")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# ──────────────────────────────────────────────────────────────────────────────
# Fixed constants
# ──────────────────────────────────────────────────────────────────────────────

# Rows per page for the slow-request and error-summary tables
PAGE_SIZE = 20

# Inclusive upper bounds (ms) of the first four P95 severity tiers
SEVERITY_THRESHOLDS_MS = (300.0, 1000.0, 5000.0, 10000.0)

# A time bucket whose lower bound reaches this many seconds marks its endpoint slow
SLOW_BUCKET_SECONDS = 10.0

# Percentile curves are only drawn for endpoints with at least this many requests
MIN_GRAPH_REQUESTS = 100

ACCEPTED_EXTENSIONS = (".csv", ".txt")
ARCHIVE_EXTENSION = ".zip"
