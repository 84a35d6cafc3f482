"""Worker that periodically expires and cancels overdue reservations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from eventify.core.clock import utcnow
from eventify.core.config import get_settings
from eventify.services.expiry import ExpirySweeper, SweepReport
from eventify.workers.observability import configure_worker, worker_span

LOGGER = logging.getLogger(__name__)

SERVICE_NAME = "expiry-sweeper-worker"


async def run_once(sweeper: ExpirySweeper, *, now: datetime | None = None) -> SweepReport:
    """Execute a single sweep cycle."""

    with worker_span("expiry_sweeper.cycle"):
        report = sweeper.run(now=now)
    if report.failed:
        LOGGER.warning("expiry sweep finished with failures", extra={"failed": report.failed})
    return report


async def run(
    sweeper: ExpirySweeper | None = None,
    *,
    interval_seconds: float | None = None,
    now_fn: Callable[[], datetime] = utcnow,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    iterations: int | None = None,
) -> None:
    """Run sweeps forever, or ``iterations`` times, at the configured cadence."""

    settings = get_settings()
    if sweeper is None:
        from eventify.db.session import SessionLocal

        sweeper = ExpirySweeper(SessionLocal, settings=settings)
    interval = interval_seconds if interval_seconds is not None else settings.expiry_sweep_interval_seconds
    interval = max(1.0, float(interval))
    LOGGER.info("starting expiry sweeper", extra={"interval_seconds": interval})

    executed = 0
    while iterations is None or executed < iterations:
        try:
            await run_once(sweeper, now=now_fn())
        except Exception:
            LOGGER.exception("expiry sweep cycle failed")
        executed += 1
        if iterations is not None and executed >= iterations:
            break
        await sleep_fn(interval)


def main() -> None:
    configure_worker(SERVICE_NAME)
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        LOGGER.info("expiry sweeper stopped")


if __name__ == "__main__":
    main()
