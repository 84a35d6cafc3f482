"""Prometheus metrics utilities for API and worker processes."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
RESERVATION_TRANSITION_COUNTER = Counter(
    "reservation_transitions_total",
    "Reservation lifecycle transitions applied.",
    labelnames=("from_status", "to_status"),
)
POINTS_LEDGER_COUNTER = Counter(
    "points_ledger_mutations_total",
    "Points ledger entries written, by direction.",
    labelnames=("direction",),
)
EXPIRY_SWEEP_COUNTER = Counter(
    "expiry_sweep_reservations_total",
    "Reservations handled by the expiry sweeper, by outcome.",
    labelnames=("outcome",),
)
EXPIRY_SWEEP_LAST_RUN = Gauge(
    "expiry_sweep_last_run_timestamp_seconds",
    "Unix timestamp of the last completed expiry sweep.",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            route = request.scope.get("route")
            path = getattr(route, "path", None) or path
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


def record_transition(from_status: str, to_status: str) -> None:
    RESERVATION_TRANSITION_COUNTER.labels(from_status=from_status, to_status=to_status).inc()


def record_ledger_mutation(direction: str) -> None:
    POINTS_LEDGER_COUNTER.labels(direction=direction).inc()


def record_sweep(*, expired: int, canceled: int, skipped: int, failed: int) -> None:
    """Publish the outcome counts of one sweep."""
    for outcome, count in (
        ("expired", expired),
        ("canceled", canceled),
        ("skipped", skipped),
        ("failed", failed),
    ):
        if count:
            EXPIRY_SWEEP_COUNTER.labels(outcome=outcome).inc(count)
    EXPIRY_SWEEP_LAST_RUN.set_to_current_time()


__all__ = [
    "EXPIRY_SWEEP_COUNTER",
    "EXPIRY_SWEEP_LAST_RUN",
    "POINTS_LEDGER_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "RESERVATION_TRANSITION_COUNTER",
    "metrics_endpoint",
    "metrics_router",
    "record_ledger_mutation",
    "record_sweep",
    "record_transition",
]
