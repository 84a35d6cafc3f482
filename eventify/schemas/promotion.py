"""Schemas for event promotions."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from eventify.models import PromotionKind


class PromotionCreate(BaseModel):
    event_id: str = Field(..., min_length=1, max_length=36)
    code: str = Field(..., min_length=1, max_length=64)
    kind: PromotionKind
    value: int = Field(..., gt=0, description="Percent (1-100) or fixed IDR amount")
    min_spend_idr: int = Field(default=0, ge=0)
    starts_at: datetime
    ends_at: datetime
    max_uses: int | None = Field(default=None, ge=1)


class PromotionUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=64)
    kind: PromotionKind | None = None
    value: int | None = Field(default=None, gt=0)
    min_spend_idr: int | None = Field(default=None, ge=0)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    max_uses: int | None = Field(default=None, ge=1)


class PromotionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    code: str
    kind: PromotionKind
    value: int
    min_spend_idr: int
    starts_at: datetime
    ends_at: datetime
    max_uses: int | None
    uses_count: int


__all__ = ["PromotionCreate", "PromotionRead", "PromotionUpdate"]
