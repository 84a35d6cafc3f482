"""Event, ticket type and promotion ORM models.

These rows are owned by the event catalogue; the ticketing core only reads
them, except for the inventory counters (``TicketType.sold`` and
``Event.seats_available``) and the promotion usage counter.
"""
from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventify.models.base import Base, TimestampMixin


class PromotionKind(str, enum.Enum):
    PERCENT = "PERCENT"
    FIXED = "FIXED"


class Event(TimestampMixin, Base):
    """A ticketed event run by an organizer."""

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("seats_available >= 0", name="ck_events_seats_available_non_negative"),
        CheckConstraint("seats_available <= capacity", name="ck_events_seats_within_capacity"),
        Index("ix_events_organizer_id", "organizer_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organizer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    seats_available: Mapped[int] = mapped_column(Integer, nullable=False)

    organizer = relationship("User", back_populates="events")
    ticket_types = relationship("TicketType", back_populates="event")
    promotions = relationship("Promotion", back_populates="event")


class TicketType(TimestampMixin, Base):
    """Priced ticket category with an optional quota."""

    __tablename__ = "ticket_types"
    __table_args__ = (
        CheckConstraint("price_idr >= 0", name="ck_ticket_types_price_non_negative"),
        CheckConstraint("sold >= 0", name="ck_ticket_types_sold_non_negative"),
        CheckConstraint("quota IS NULL OR sold <= quota", name="ck_ticket_types_sold_within_quota"),
        Index("ix_ticket_types_event_id", "event_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    price_idr: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quota: Mapped[int | None] = mapped_column(Integer)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    event = relationship("Event", back_populates="ticket_types")

    @property
    def remaining(self) -> int | None:
        if self.quota is None:
            return None
        return self.quota - self.sold


class Promotion(TimestampMixin, Base):
    """Event-scoped promo code."""

    __tablename__ = "promotions"
    __table_args__ = (
        UniqueConstraint("event_id", "code", name="uq_promotions_event_code"),
        CheckConstraint("value >= 0", name="ck_promotions_value_non_negative"),
        CheckConstraint("min_spend_idr >= 0", name="ck_promotions_min_spend_non_negative"),
        CheckConstraint("uses_count >= 0", name="ck_promotions_uses_non_negative"),
        CheckConstraint(
            "max_uses IS NULL OR uses_count <= max_uses", name="ck_promotions_uses_within_cap"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[PromotionKind] = mapped_column(
        SAEnum(PromotionKind, name="promotion_kind"), nullable=False
    )
    value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    min_spend_idr: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_uses: Mapped[int | None] = mapped_column(Integer)
    uses_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    event = relationship("Event", back_populates="promotions")


__all__ = ["Event", "Promotion", "PromotionKind", "TicketType"]
