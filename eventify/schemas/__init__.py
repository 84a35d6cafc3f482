"""Pydantic schemas package."""

from .points import LedgerEntryRead, PointsBalanceRead
from .promotion import PromotionCreate, PromotionRead, PromotionUpdate
from .reservation import (
    CheckoutRequest,
    DecisionRequest,
    ReservationItemRead,
    ReservationRead,
    SweepResponse,
)

__all__ = [
    "CheckoutRequest",
    "DecisionRequest",
    "LedgerEntryRead",
    "PointsBalanceRead",
    "PromotionCreate",
    "PromotionRead",
    "PromotionUpdate",
    "ReservationItemRead",
    "ReservationRead",
    "SweepResponse",
]
