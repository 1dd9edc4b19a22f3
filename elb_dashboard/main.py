from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from elb_dashboard.config import API_PREFIX, CORS_ORIGINS, LOG_LEVEL, PAGE_SIZE
from elb_dashboard.models.data_models import RecordSchema, SortDirection
from elb_dashboard.services.aggregator import (
    ERROR_SUMMARY_FIELDS,
    SLOW_QUERY_FIELDS,
    Aggregator,
    pretty_message,
    severity_tier,
    try_parse_json,
)
from elb_dashboard.services.ingest import IngestService
from elb_dashboard.services.storage import DatasetStore
from elb_dashboard.utils.helpers import display_path, parse_ts

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
# Services
# ──────────────────────────────────────────────────────────────────────────────

store = DatasetStore()
ingest = IngestService(store)
aggregator = Aggregator(store)


def require(schema: RecordSchema) -> List[Any]:
    try:
        return aggregator.dataset(schema)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


def bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


def parse_schema(value: str) -> RecordSchema:
    try:
        return RecordSchema(value)
    except ValueError as exc:
        raise bad_request(exc)


def parse_direction(value: str) -> SortDirection:
    try:
        return SortDirection(value.lower())
    except ValueError as exc:
        raise bad_request(exc)


def page_payload(page, items: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "items": items,
        "page": page.page,
        "page_size": page.page_size,
        "total_items": page.total_items,
        "total_pages": page.total_pages,
        "showing": [page.first_index, page.last_index],
    }


# ──────────────────────────────────────────────────────────────────────────────
# App
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(title="Load Balancer Log Analysis (Upload Exports → Dashboard APIs)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ──────────────────────────────────────────────────────────────────────────────
# Upload + datasets
# ──────────────────────────────────────────────────────────────────────────────


@app.post(f"{API_PREFIX}/upload")
async def upload_files(files: List[UploadFile] = File(...)) -> Dict[str, Any]:
    """
    Accepts one or more:
      - CSV exports (load balancer summary, performance metrics, slow requests)
      - TXT error summaries ("<count> <message>" per line)
      - ZIP archives containing any of the above
    Files are processed in upload order; a later file of the same schema
    replaces an earlier one.
    """
    results = []
    received = 0
    for upload in files:
        content = await upload.read()
        if not content:
            logger.info("Skipping empty upload %s", upload.filename)
            continue
        received += 1
        results.extend(ingest.ingest_upload(upload.filename or "", content))

    if not received:
        raise HTTPException(status_code=400, detail="Empty file")

    return {
        "status": "ok",
        "loaded": [
            {"filename": r.filename, "schema": r.schema.value, "accepted": r.accepted, "dropped": r.dropped}
            for r in results
        ],
        "file_names": store.file_names(),
    }


@app.get(f"{API_PREFIX}/health")
def health() -> Dict[str, Any]:
    return asdict(store.stat())


@app.get(f"{API_PREFIX}/datasets")
def datasets() -> Dict[str, Any]:
    status = store.stat()
    return {
        "active": status.active_schemas,
        "file_names": status.file_names,
        "record_counts": status.record_counts,
    }


@app.delete(f"{API_PREFIX}/datasets")
def clear_all() -> Dict[str, Any]:
    store.clear()
    return {"status": "ok", "active": []}


@app.delete(f"{API_PREFIX}/datasets/{{schema}}")
def clear_one(schema: str) -> Dict[str, Any]:
    store.clear(parse_schema(schema))
    return {"status": "ok", "active": sorted(s.value for s in store.active_schemas())}


# ──────────────────────────────────────────────────────────────────────────────
# Load balancer summary
# ──────────────────────────────────────────────────────────────────────────────


@app.get(f"{API_PREFIX}/summary/endpoints")
def summary_endpoints() -> Dict[str, Any]:
    entries = require(RecordSchema.LOAD_BALANCER_SUMMARY)
    return {
        "endpoints": [
            {**asdict(info), "key": info.key, "label": info.label}
            for info in aggregator.endpoints(entries)
        ]
    }


@app.get(f"{API_PREFIX}/summary/distribution")
def summary_distribution(
    by: str = Query("status"),  # "status" or "verb"
    endpoint: str = Query("all"),
) -> Dict[str, Any]:
    entries = aggregator.filter_by_endpoint(require(RecordSchema.LOAD_BALANCER_SUMMARY), endpoint)
    if by == "status":
        data = aggregator.status_distribution(entries)
    elif by == "verb":
        data = aggregator.verb_distribution(entries)
    else:
        raise HTTPException(status_code=400, detail=f"Unknown grouping: {by}")
    return {"by": by, "distribution": [asdict(d) for d in data]}


@app.get(f"{API_PREFIX}/summary/time-buckets")
def summary_time_buckets(endpoint: str = Query("all")) -> Dict[str, Any]:
    entries = aggregator.filter_by_endpoint(require(RecordSchema.LOAD_BALANCER_SUMMARY), endpoint)
    return {
        "status_codes": aggregator.status_codes(entries),
        "buckets": [row.as_dict() for row in aggregator.time_bucket_histogram(entries)],
    }


# ──────────────────────────────────────────────────────────────────────────────
# Performance metrics
# ──────────────────────────────────────────────────────────────────────────────


@app.get(f"{API_PREFIX}/performance")
def performance(
    sort_by: str = Query("P95"),
    order: str = Query("desc"),
    endpoint: str = Query(""),
    method: str = Query(""),
) -> Dict[str, Any]:
    entries = aggregator.filter_performance(require(RecordSchema.PERFORMANCE_METRICS), endpoint, method)
    try:
        entries = aggregator.sort_performance(entries, sort_by, parse_direction(order))
    except ValueError as exc:
        raise bad_request(exc)

    return {
        "methods": sorted({e.verb for e in require(RecordSchema.PERFORMANCE_METRICS)}),
        "rows": [
            {**asdict(e), "P100": e.max_rt, "severity": int(severity_tier(e.P95))}
            for e in entries
        ],
    }


@app.get(f"{API_PREFIX}/performance/scatter")
def performance_scatter(
    metric: str = Query("P100"),
    endpoint: str = Query(""),
    method: str = Query(""),
) -> Dict[str, Any]:
    entries = aggregator.filter_performance(require(RecordSchema.PERFORMANCE_METRICS), endpoint, method)
    try:
        points = aggregator.scatter_points(entries, metric)
    except ValueError as exc:
        raise bad_request(exc)
    return {"metric": metric, "points": [asdict(p) for p in points]}


@app.get(f"{API_PREFIX}/performance/curves")
def performance_curves(
    show_all: bool = Query(False),
    sort_by: str = Query("P95"),
    order: str = Query("desc"),
) -> Dict[str, Any]:
    entries = require(RecordSchema.PERFORMANCE_METRICS)
    try:
        entries = aggregator.sort_performance(entries, sort_by, parse_direction(order))
    except ValueError as exc:
        raise bad_request(exc)

    return {
        "curves": [
            {
                "title": f"{e.verb} {display_path(e.base_url)}",
                "color": severity_tier(e.P95).color,
                "points": [asdict(p) for p in aggregator.percentile_curve(e)],
            }
            for e in aggregator.curve_entries(entries, show_all)
        ]
    }


# ──────────────────────────────────────────────────────────────────────────────
# Slow requests + error summary tables
# ──────────────────────────────────────────────────────────────────────────────


@app.get(f"{API_PREFIX}/slow-requests")
def slow_requests(
    search: str = Query(""),
    page: int = Query(1, ge=1),
    sort_by: Optional[str] = Query(None),
    order: str = Query("asc"),
) -> Dict[str, Any]:
    entries = aggregator.search_slow_queries(require(RecordSchema.SLOW_QUERY), search)
    if sort_by is not None:
        if sort_by not in SLOW_QUERY_FIELDS:
            raise HTTPException(status_code=400, detail=f"Unknown sort field: {sort_by}")
        entries = aggregator.sort_entries(entries, SLOW_QUERY_FIELDS[sort_by], parse_direction(order))

    result = aggregator.paginate(entries, page, PAGE_SIZE)
    items = []
    for e in result.items:
        ts = parse_ts(e.timestamp)
        items.append({**asdict(e), "time_utc": ts.isoformat() if ts else None})
    return page_payload(result, items)


@app.get(f"{API_PREFIX}/errors")
def errors(
    search: str = Query(""),
    page: int = Query(1, ge=1),
    pretty: bool = Query(False),
    sort_by: Optional[str] = Query(None),
    order: str = Query("desc"),
) -> Dict[str, Any]:
    entries = aggregator.search_errors(require(RecordSchema.ERROR_SUMMARY), search)
    if sort_by is not None:
        if sort_by not in ERROR_SUMMARY_FIELDS:
            raise HTTPException(status_code=400, detail=f"Unknown sort field: {sort_by}")
        entries = aggregator.sort_entries(entries, ERROR_SUMMARY_FIELDS[sort_by], parse_direction(order))

    result = aggregator.paginate(entries, page, PAGE_SIZE)
    items = []
    for e in result.items:
        item = {**asdict(e), "is_json": try_parse_json(e.message).is_json}
        if pretty:
            item["pretty"] = pretty_message(e.message)
        items.append(item)
    return page_payload(result, items)
