"""Schemas for the points balance and ledger history."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    delta_idr: int
    reason: str
    reservation_id: str | None
    created_at: datetime


class PointsBalanceRead(BaseModel):
    user_id: str
    balance_idr: int
    history: list[LedgerEntryRead]


__all__ = ["LedgerEntryRead", "PointsBalanceRead"]
