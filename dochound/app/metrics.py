from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from dochound.app.settings import settings

REQUEST_COUNT = Counter(
    "dochound_http_requests_total",
    "HTTP requests by route template and status",
    ["method", "route", "status"],
)
REQUEST_LATENCY = Histogram(
    "dochound_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "route"],
)
CHAT_TURNS = Counter(
    "dochound_chat_turns_total",
    "Chat turns by tenant and outcome",
    ["tenant", "outcome"],
)
RETRIEVED_SOURCES = Histogram(
    "dochound_retrieved_sources",
    "Number of sources retrieved per chat turn",
    buckets=(0, 1, 2, 3, 5, 8, 13, 21),
)
REINDEX_RUNS = Counter(
    "dochound_reindex_runs_total",
    "Reindex runs by tenant and outcome",
    ["tenant", "outcome"],
)


def _route_label(request: Request) -> str:
    """Use the route template so tenant ids do not explode label cardinality."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    if request.url.path == "/metrics":
        return await call_next(request)
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.monotonic() - start
        route = _route_label(request)
        REQUEST_COUNT.labels(request.method, route, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, route).observe(duration)


def record_chat_turn(tenant_id: str, outcome: str, sources: int | None = None) -> None:
    if not settings.metrics_enabled:
        return
    CHAT_TURNS.labels(tenant_id, outcome).inc()
    if sources is not None:
        RETRIEVED_SOURCES.observe(sources)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_reindex(tenant_id: str, outcome: str) -> None:
    if settings.metrics_enabled:
        REINDEX_RUNS.labels(tenant_id, outcome).inc()
