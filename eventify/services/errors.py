"""Typed failures raised by the ticketing core."""
from __future__ import annotations


class ReservationError(RuntimeError):
    """Base class for ticketing core errors."""


class NotFoundError(ReservationError):
    """Raised when an event, ticket type, reservation, user or promo code is missing."""


class ValidationFailedError(ReservationError):
    """Raised for malformed input or a promo code that fails validation."""


class InsufficientBalanceError(ReservationError):
    """Raised when a points debit exceeds the user's balance."""


class ForbiddenError(ReservationError):
    """Raised when the actor does not own the reservation or event."""


class InvalidStateTransitionError(ReservationError):
    """Raised for transitions out of terminal states or lost transition races."""


class ConflictError(ReservationError):
    """Raised when a concurrent mutation won, e.g. inventory was sold out."""


__all__ = [
    "ConflictError",
    "ForbiddenError",
    "InsufficientBalanceError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "ReservationError",
    "ValidationFailedError",
]
