"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, TimestampMixin
from .event import Event, Promotion, PromotionKind, TicketType
from .points_ledger import PointsLedgerEntry
from .reservation import Reservation, ReservationItem, ReservationStatus, TERMINAL_STATUSES, Ticket
from .user import User, UserRole

__all__ = [
    "AuditLog",
    "Base",
    "Event",
    "PointsLedgerEntry",
    "Promotion",
    "PromotionKind",
    "Reservation",
    "ReservationItem",
    "ReservationStatus",
    "TERMINAL_STATUSES",
    "Ticket",
    "TicketType",
    "TimestampMixin",
    "User",
    "UserRole",
]
