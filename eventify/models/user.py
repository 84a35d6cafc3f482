"""User ORM model."""
from __future__ import annotations

import enum
import uuid

from sqlalchemy import BigInteger, CheckConstraint, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventify.models.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    ORGANIZER = "ORGANIZER"
    CUSTOMER = "CUSTOMER"


class User(TimestampMixin, Base):
    """Account holding a loyalty points balance."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"), nullable=False, default=UserRole.CUSTOMER
    )
    points_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    events = relationship("Event", back_populates="organizer")
    reservations = relationship("Reservation", back_populates="user")
    ledger_entries = relationship("PointsLedgerEntry", back_populates="user")


__all__ = ["User", "UserRole"]
