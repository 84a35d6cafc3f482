"""Points ledger: balance counter plus append-only history.

The ``users.points_balance`` column is the authoritative balance. Each
mutation is a single conditional ``UPDATE`` followed by a ledger insert in
the caller's transaction; nothing here commits.
"""
from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from eventify.models import PointsLedgerEntry, User
from eventify.obs import record_ledger_mutation
from eventify.services.errors import InsufficientBalanceError, NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)


class PointsLedger:
    """Per-session facade over the points balance and its history."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def balance(self, user_id: str) -> int:
        value = self._session.scalar(select(User.points_balance).where(User.id == user_id))
        if value is None:
            raise NotFoundError(f"User '{user_id}' was not found")
        return int(value)

    def history(self, user_id: str, *, limit: int = 100) -> list[PointsLedgerEntry]:
        statement = (
            select(PointsLedgerEntry)
            .where(PointsLedgerEntry.user_id == user_id)
            .order_by(PointsLedgerEntry.id.desc())
            .limit(limit)
        )
        return list(self._session.scalars(statement))

    def debit(
        self,
        user_id: str,
        amount: int,
        *,
        reason: str,
        reservation_id: str | None = None,
    ) -> PointsLedgerEntry:
        """Take ``amount`` points, failing instead of overdrawing."""

        _require_positive(amount)
        result = self._session.execute(
            update(User)
            .where(User.id == user_id, User.points_balance >= amount)
            .values(points_balance=User.points_balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = self.balance(user_id)
            raise InsufficientBalanceError(
                f"Cannot use {amount} points, only {available} available"
            )
        entry = self._append(user_id, -amount, reason=reason, reservation_id=reservation_id)
        record_ledger_mutation("debit")
        logger.info(
            "points debited",
            extra={"user_id": user_id, "amount": amount, "reservation_id": reservation_id},
        )
        return entry

    def credit(
        self,
        user_id: str,
        amount: int,
        *,
        reason: str,
        reservation_id: str | None = None,
    ) -> PointsLedgerEntry:
        _require_positive(amount)
        result = self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(points_balance=User.points_balance + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError(f"User '{user_id}' was not found")
        entry = self._append(user_id, amount, reason=reason, reservation_id=reservation_id)
        record_ledger_mutation("credit")
        logger.info(
            "points credited",
            extra={"user_id": user_id, "amount": amount, "reservation_id": reservation_id},
        )
        return entry

    def _append(
        self, user_id: str, delta: int, *, reason: str, reservation_id: str | None
    ) -> PointsLedgerEntry:
        entry = PointsLedgerEntry(
            user_id=user_id,
            delta_idr=delta,
            reason=reason,
            reservation_id=reservation_id,
        )
        self._session.add(entry)
        self._session.flush()
        return entry


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationFailedError("Points amount must be a positive whole number")


__all__ = ["PointsLedger"]
