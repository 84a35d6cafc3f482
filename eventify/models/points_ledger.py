"""Append-only points ledger ORM model."""
from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventify.models.base import Base, TimestampMixin


class PointsLedgerEntry(TimestampMixin, Base):
    """Signed balance mutation; never updated or deleted."""

    __tablename__ = "points_ledger"
    __table_args__ = (
        CheckConstraint("delta_idr <> 0", name="ck_points_ledger_delta_non_zero"),
        Index("ix_points_ledger_user_id", "user_id"),
        Index("ix_points_ledger_reservation_id", "reservation_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    delta_idr: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    reservation_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True
    )

    user = relationship("User", back_populates="ledger_entries")


__all__ = ["PointsLedgerEntry"]
