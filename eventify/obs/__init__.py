"""Observability utilities."""

from .metrics import (
    EXPIRY_SWEEP_COUNTER,
    EXPIRY_SWEEP_LAST_RUN,
    POINTS_LEDGER_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    RESERVATION_TRANSITION_COUNTER,
    PrometheusMiddleware,
    metrics_router,
    record_ledger_mutation,
    record_sweep,
    record_transition,
)
from .tracing import (
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    start_span,
)

__all__ = [
    "EXPIRY_SWEEP_COUNTER",
    "EXPIRY_SWEEP_LAST_RUN",
    "POINTS_LEDGER_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "RESERVATION_TRANSITION_COUNTER",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "metrics_router",
    "record_ledger_mutation",
    "record_sweep",
    "record_transition",
    "start_span",
]
