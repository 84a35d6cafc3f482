"""Timeout sweep forcing overdue reservations into terminal states."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from eventify.core.clock import ensure_utc, utcnow
from eventify.core.config import Settings, get_settings
from eventify.models import Reservation, ReservationStatus
from eventify.obs import record_sweep, start_span
from eventify.services.errors import InvalidStateTransitionError
from eventify.services.reservations import ReservationService

logger = logging.getLogger(__name__)

_PHASES = (
    (ReservationStatus.WAITING_PAYMENT, Reservation.expires_at, "expired"),
    (ReservationStatus.WAITING_CONFIRMATION, Reservation.decision_due_at, "canceled"),
)


@dataclass(slots=True)
class SweepReport:
    """Summary of one sweep."""

    expired: int = 0
    canceled: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def transitions(self) -> int:
        return self.expired + self.canceled


class ExpirySweeper:
    """Expires unpaid reservations and cancels undecided ones.

    Each reservation is handled in its own session so one failure, or a
    reservation another actor moved first, never affects the rest of the
    batch. Overlapping sweeps are safe: the state machine re-checks status
    and deadline under the optimistic lock and the loser is skipped.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._clock = clock or utcnow

    def run(self, *, now: datetime | None = None) -> SweepReport:
        current = ensure_utc(now or self._clock())
        report = SweepReport()

        with start_span("expiry_sweep.run", now=current.isoformat()):
            for status, deadline, applied in _PHASES:
                cursor: tuple[str, datetime] | None = None
                while True:
                    batch = self._overdue_batch(status, deadline, current, after=cursor)
                    if not batch:
                        break
                    for reservation_id, _ in batch:
                        outcome = self._apply(reservation_id, current, status=status)
                        field = applied if outcome == "applied" else outcome
                        setattr(report, field, getattr(report, field) + 1)
                    cursor = batch[-1]

        record_sweep(
            expired=report.expired,
            canceled=report.canceled,
            skipped=report.skipped,
            failed=report.failed,
        )
        logger.info(
            "expiry sweep complete",
            extra={
                "expired": report.expired,
                "canceled": report.canceled,
                "skipped": report.skipped,
                "failed": report.failed,
            },
        )
        return report

    def _overdue_batch(
        self,
        status: ReservationStatus,
        deadline,
        now: datetime,
        *,
        after: tuple[str, datetime] | None = None,
    ) -> list[tuple[str, datetime]]:
        """Next page of ``(id, deadline)`` pairs, keyed on ``(deadline, id)``.

        Rows that were skipped or failed stay eligible, so paging past them
        keeps them from being fetched again within the same run.
        """

        statement = select(Reservation.id, deadline).where(
            Reservation.status == status, deadline.is_not(None), deadline < now
        )
        if after is not None:
            last_id, last_deadline = after
            statement = statement.where(
                or_(
                    deadline > last_deadline,
                    and_(deadline == last_deadline, Reservation.id > last_id),
                )
            )
        statement = statement.order_by(deadline, Reservation.id).limit(
            self._settings.expiry_sweep_batch_size
        )
        session = self._session_factory()
        try:
            return [(row[0], row[1]) for row in session.execute(statement)]
        finally:
            session.close()

    def _apply(self, reservation_id: str, now: datetime, *, status: ReservationStatus) -> str:
        session = self._session_factory()
        service = ReservationService(session, settings=self._settings, clock=self._clock)
        try:
            if status == ReservationStatus.WAITING_PAYMENT:
                service.expire_overdue(reservation_id, now=now)
            else:
                service.cancel_overdue(reservation_id, now=now)
        except InvalidStateTransitionError:
            logger.debug("reservation already moved, skipping", extra={"reservation_id": reservation_id})
            return "skipped"
        except Exception:
            logger.exception("failed to sweep reservation", extra={"reservation_id": reservation_id})
            return "failed"
        finally:
            session.close()
        return "applied"


def run_expiry_sweep(
    session_factory: Callable[[], Session],
    *,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> int:
    """Run one sweep and return the number of transitions applied."""

    return ExpirySweeper(session_factory, settings=settings).run(now=now).transitions


__all__ = ["ExpirySweeper", "SweepReport", "run_expiry_sweep"]
