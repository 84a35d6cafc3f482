"""Pydantic schemas for reservation resources."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from eventify.models import ReservationStatus


class CheckoutRequest(BaseModel):
    """Checkout payload for a single ticket type."""

    event_id: str = Field(..., min_length=1, max_length=36)
    ticket_type_id: str = Field(..., min_length=1, max_length=36)
    quantity: int = Field(..., ge=1, description="Number of tickets to reserve")
    use_points: bool = Field(default=False, description="Redeem points against the total")
    promo_code: str | None = Field(default=None, max_length=64)


class ReservationItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticket_type_id: str
    quantity: int
    unit_price_idr: int
    line_total_idr: int


class ReservationRead(BaseModel):
    """Serialized reservation with its price breakdown and deadlines."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    event_id: str
    status: ReservationStatus
    promo_code: str | None
    total_before_idr: int
    promo_discount_idr: int
    points_used_idr: int
    total_payable_idr: int
    created_at: datetime
    expires_at: datetime | None
    decision_due_at: datetime | None
    payment_proof_url: str | None
    payment_proof_at: datetime | None
    decided_at: datetime | None
    lock_version: int
    items: list[ReservationItemRead] = Field(default_factory=list)


class DecisionRequest(BaseModel):
    decision: Literal["approve", "reject"]


class SweepResponse(BaseModel):
    expired: int
    canceled: int
    skipped: int
    failed: int


__all__ = [
    "CheckoutRequest",
    "DecisionRequest",
    "ReservationItemRead",
    "ReservationRead",
    "SweepResponse",
]
