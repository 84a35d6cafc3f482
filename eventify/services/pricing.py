"""Checkout pricing: subtotal, promo discount and points redemption.

Everything in this module is pure. Callers look promotions up and apply the
resulting ``points_used`` to the ledger themselves.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from eventify.core.clock import ensure_utc
from eventify.models import Promotion, PromotionKind
from eventify.services.errors import NotFoundError, ValidationFailedError


@dataclass(slots=True, frozen=True)
class PromotionTerms:
    """Immutable snapshot of a promotion row."""

    id: str | None
    event_id: str
    code: str
    kind: PromotionKind
    value: int
    min_spend_idr: int
    starts_at: datetime
    ends_at: datetime
    max_uses: int | None = None
    uses_count: int = 0

    @classmethod
    def from_model(cls, promotion: Promotion) -> "PromotionTerms":
        return cls(
            id=promotion.id,
            event_id=promotion.event_id,
            code=promotion.code,
            kind=PromotionKind(promotion.kind),
            value=int(promotion.value),
            min_spend_idr=int(promotion.min_spend_idr or 0),
            starts_at=ensure_utc(promotion.starts_at),
            ends_at=ensure_utc(promotion.ends_at),
            max_uses=promotion.max_uses,
            uses_count=int(promotion.uses_count or 0),
        )

    def discount_for(self, subtotal: int) -> int:
        if self.kind is PromotionKind.PERCENT:
            discount = (self.value * subtotal) // 100
        else:
            discount = self.value
        return max(0, min(discount, subtotal))


@dataclass(slots=True, frozen=True)
class PriceQuote:
    """Result of pricing one checkout request."""

    unit_price: int
    quantity: int
    subtotal: int
    promo_discount: int
    points_used: int
    payable: int
    promotion: PromotionTerms | None = None

    @property
    def is_free(self) -> bool:
        return self.payable == 0


def validate_promotion(
    promotion: PromotionTerms | None,
    *,
    code: str,
    event_id: str,
    subtotal: int,
    now: datetime,
) -> PromotionTerms:
    """Return ``promotion`` if it may be applied, raise otherwise."""

    if promotion is None:
        raise NotFoundError(f"Promo code '{code}' was not found for this event")
    if promotion.event_id != event_id:
        raise ValidationFailedError(f"Promo code '{code}' does not apply to this event")
    if promotion.code != code:
        raise ValidationFailedError(f"Promo code '{code}' is invalid")

    current = ensure_utc(now)
    if current < promotion.starts_at:
        raise ValidationFailedError(f"Promo code '{code}' is not active yet")
    if current > promotion.ends_at:
        raise ValidationFailedError(f"Promo code '{code}' has expired")
    if subtotal < promotion.min_spend_idr:
        raise ValidationFailedError(
            f"Promo code '{code}' requires a minimum spend of {promotion.min_spend_idr} IDR"
        )
    if promotion.max_uses is not None and promotion.uses_count >= promotion.max_uses:
        raise ValidationFailedError(f"Promo code '{code}' has reached its usage limit")
    return promotion


def calculate_price(
    unit_price: int,
    quantity: int,
    *,
    now: datetime,
    event_id: str,
    promo_code: str | None = None,
    promotion: PromotionTerms | None = None,
    points_balance: int = 0,
    use_points: bool = False,
) -> PriceQuote:
    """Price a checkout.

    ``promotion`` is the lookup result for ``promo_code`` (``None`` when the
    lookup found nothing). A supplied code that fails validation rejects the
    whole checkout instead of silently pricing without a discount.
    """

    if quantity < 1:
        raise ValidationFailedError("Quantity must be at least 1")
    if unit_price < 0:
        raise ValidationFailedError("Ticket price cannot be negative")

    subtotal = unit_price * quantity

    applied: PromotionTerms | None = None
    discount = 0
    if promo_code:
        applied = validate_promotion(
            promotion, code=promo_code, event_id=event_id, subtotal=subtotal, now=now
        )
        discount = applied.discount_for(subtotal)

    points_used = 0
    if use_points and points_balance > 0:
        points_used = min(points_balance, subtotal - discount)

    payable = max(0, subtotal - discount - points_used)
    return PriceQuote(
        unit_price=unit_price,
        quantity=quantity,
        subtotal=subtotal,
        promo_discount=discount,
        points_used=points_used,
        payable=payable,
        promotion=applied,
    )


__all__ = ["PriceQuote", "PromotionTerms", "calculate_price", "validate_promotion"]
