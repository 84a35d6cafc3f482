"""Shared observability helpers for worker processes."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry.trace import Span

from eventify.core.config import get_settings
from eventify.core.logging import configure_logging
from eventify.obs import initialise_tracing, start_span


def configure_worker(service_name: str) -> None:
    """Configure logging and tracing for a worker service."""

    configure_logging()
    settings = get_settings()
    if settings.enable_tracing:
        initialise_tracing(
            service_name=service_name,
            endpoint=settings.otel_exporter_endpoint,
            instrument_logging=False,
        )


@contextmanager
def worker_span(name: str, **attributes: Any) -> Iterator[Span]:
    """Context manager that starts a worker span and attaches optional attributes."""

    with start_span(name, **attributes) as span:
        yield span


__all__ = ["configure_worker", "worker_span"]
