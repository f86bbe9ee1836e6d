"""Prometheus counters for the gateway and the guarded scrape endpoint."""

from __future__ import annotations

import time
from typing import Callable

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from .deps.auth import get_api_key

HTTP_REQUESTS = Counter(
    "chunkscribe_http_requests_total",
    "Gateway requests by route and status",
    labelnames=("route", "method", "status"),
)

# Transcribe calls can legitimately run for minutes while the provider retries.
HTTP_LATENCY = Histogram(
    "chunkscribe_http_request_seconds",
    "Gateway request latency",
    labelnames=("route", "method"),
    buckets=(0.05, 0.25, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

PROVIDER_CALLS = Counter(
    "chunkscribe_provider_calls_total",
    "Transcription provider calls by outcome",
    labelnames=("outcome",),
)

TRANSCODE_FALLBACKS = Counter(
    "chunkscribe_transcode_fallbacks_total",
    "ffmpeg fallbacks triggered by undecodable uploads",
    labelnames=("status",),
)

SUMMARY_COUNTER = Counter(
    "chunkscribe_summaries_total",
    "Summary requests by status",
    labelnames=("status",),
)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint(_: str = Depends(get_api_key)) -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def instrument_app(app: FastAPI) -> FastAPI:
    @app.middleware("http")
    async def record_request(request: Request, call_next: Callable):  # type: ignore
        started = time.perf_counter()
        response = await call_next(request)
        route = getattr(request.scope.get("route"), "path", request.url.path)
        HTTP_REQUESTS.labels(route=route, method=request.method, status=response.status_code).inc()
        HTTP_LATENCY.labels(route=route, method=request.method).observe(time.perf_counter() - started)
        return response

    return app
