"""Reservation (checkout transaction) ORM models."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventify.models.base import Base, TimestampMixin


class ReservationStatus(str, enum.Enum):
    WAITING_PAYMENT = "WAITING_PAYMENT"
    WAITING_CONFIRMATION = "WAITING_CONFIRMATION"
    DONE = "DONE"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        ReservationStatus.DONE,
        ReservationStatus.REJECTED,
        ReservationStatus.CANCELED,
        ReservationStatus.EXPIRED,
    }
)


class Reservation(TimestampMixin, Base):
    """A customer's claim on tickets moving through the payment lifecycle."""

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("total_before_idr >= 0", name="ck_reservations_total_before_non_negative"),
        CheckConstraint("promo_discount_idr >= 0", name="ck_reservations_discount_non_negative"),
        CheckConstraint("points_used_idr >= 0", name="ck_reservations_points_non_negative"),
        CheckConstraint("total_payable_idr >= 0", name="ck_reservations_payable_non_negative"),
        CheckConstraint(
            "total_payable_idr = total_before_idr - promo_discount_idr - points_used_idr",
            name="ck_reservations_payable_balanced",
        ),
        Index("ix_reservations_user_id", "user_id"),
        Index("ix_reservations_event_id", "event_id"),
        Index("ix_reservations_status_expires_at", "status", "expires_at"),
        Index("ix_reservations_status_decision_due_at", "status", "decision_due_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="RESTRICT"), nullable=False
    )
    promotion_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("promotions.id", ondelete="SET NULL"), nullable=True
    )
    promo_code: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[ReservationStatus] = mapped_column(
        SAEnum(ReservationStatus, name="reservation_status"),
        nullable=False,
        default=ReservationStatus.WAITING_PAYMENT,
    )
    total_before_idr: Mapped[int] = mapped_column(BigInteger, nullable=False)
    promo_discount_idr: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    points_used_idr: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_payable_idr: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    decision_due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    payment_proof_url: Mapped[str | None] = mapped_column(String(1024))
    payment_proof_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="reservations")
    event = relationship("Event")
    promotion = relationship("Promotion")
    items = relationship(
        "ReservationItem", back_populates="reservation", order_by="ReservationItem.id"
    )
    tickets = relationship("Ticket", back_populates="reservation")

    __mapper_args__ = {"version_id_col": lock_version}


class ReservationItem(Base):
    """Line item with the price snapshot taken at checkout."""

    __tablename__ = "reservation_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_reservation_items_quantity_positive"),
        CheckConstraint("unit_price_idr >= 0", name="ck_reservation_items_unit_price_non_negative"),
        CheckConstraint(
            "line_total_idr = unit_price_idr * quantity", name="ck_reservation_items_line_total"
        ),
        Index("ix_reservation_items_reservation_id", "reservation_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False
    )
    ticket_type_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ticket_types.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_idr: Mapped[int] = mapped_column(BigInteger, nullable=False)
    line_total_idr: Mapped[int] = mapped_column(BigInteger, nullable=False)

    reservation = relationship("Reservation", back_populates="items")
    ticket_type = relationship("TicketType")


class Ticket(TimestampMixin, Base):
    """Ticket issued once a reservation is approved."""

    __tablename__ = "tickets"
    __table_args__ = (
        Index("ix_tickets_reservation_id", "reservation_id"),
        Index("ix_tickets_holder_id", "holder_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, default=lambda: uuid.uuid4().hex
    )
    reservation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reservations.id", ondelete="RESTRICT"), nullable=False
    )
    ticket_type_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ticket_types.id", ondelete="RESTRICT"), nullable=False
    )
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="RESTRICT"), nullable=False
    )
    holder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    reservation = relationship("Reservation", back_populates="tickets")


__all__ = [
    "Reservation",
    "ReservationItem",
    "ReservationStatus",
    "TERMINAL_STATUSES",
    "Ticket",
]
