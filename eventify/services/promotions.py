"""Promotion code management for event organizers."""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventify.core.clock import ensure_utc
from eventify.db.unit_of_work import unit_of_work
from eventify.models import Event, Promotion, PromotionKind, Reservation, UserRole
from eventify.services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from eventify.services.reservations import Actor


@dataclass(slots=True, frozen=True)
class PromotionDraft:
    """Input data for a new promotion."""

    event_id: str
    code: str
    kind: PromotionKind
    value: int
    starts_at: datetime
    ends_at: datetime
    min_spend_idr: int = 0
    max_uses: int | None = None


@dataclass(slots=True, frozen=True)
class PromotionChanges:
    """Partial update; ``None`` leaves a field as it is."""

    code: str | None = None
    kind: PromotionKind | None = None
    value: int | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    min_spend_idr: int | None = None
    max_uses: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            field.name: getattr(self, field.name)
            for field in fields(self)
            if getattr(self, field.name) is not None
        }


def _validate_terms(
    *,
    code: str,
    kind: PromotionKind,
    value: int,
    starts_at: datetime,
    ends_at: datetime,
    min_spend_idr: int,
    max_uses: int | None,
) -> None:
    if not code:
        raise ValidationFailedError("Promo code cannot be blank")
    if value <= 0:
        raise ValidationFailedError("Promotion value must be positive")
    if kind is PromotionKind.PERCENT and value > 100:
        raise ValidationFailedError("Percentage promotions cannot exceed 100")
    if ensure_utc(ends_at) <= ensure_utc(starts_at):
        raise ValidationFailedError("Promotion must end after it starts")
    if min_spend_idr < 0:
        raise ValidationFailedError("Minimum spend cannot be negative")
    if max_uses is not None and max_uses < 1:
        raise ValidationFailedError("Usage cap must be at least 1")


def _ensure_owns(event: Event, actor: Actor, verb: str) -> None:
    if actor.role != UserRole.ADMIN and event.organizer_id != actor.user_id:
        raise ForbiddenError(f"Cannot {verb} promotions for this event")


def _load(session: Session, promotion_id: str) -> Promotion:
    promotion = session.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFoundError(f"Promotion '{promotion_id}' was not found")
    return promotion


def _flush_unique(session: Session, code: str) -> None:
    try:
        session.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Promotion code '{code}' already exists for this event") from exc


def create_promotion(session: Session, *, actor: Actor, draft: PromotionDraft) -> Promotion:
    """Create a promo code for an event the actor organizes."""

    code = draft.code.strip()
    _validate_terms(
        code=code,
        kind=draft.kind,
        value=draft.value,
        starts_at=draft.starts_at,
        ends_at=draft.ends_at,
        min_spend_idr=draft.min_spend_idr,
        max_uses=draft.max_uses,
    )

    with unit_of_work(session):
        event = session.get(Event, draft.event_id)
        if event is None:
            raise NotFoundError(f"Event '{draft.event_id}' was not found")
        _ensure_owns(event, actor, "create")

        promotion = Promotion(
            event_id=event.id,
            code=code,
            kind=draft.kind,
            value=draft.value,
            min_spend_idr=draft.min_spend_idr,
            starts_at=draft.starts_at,
            ends_at=draft.ends_at,
            max_uses=draft.max_uses,
        )
        session.add(promotion)
        _flush_unique(session, code)

    session.refresh(promotion)
    return promotion


def update_promotion(
    session: Session, promotion_id: str, *, actor: Actor, changes: PromotionChanges
) -> Promotion:
    """Change the terms of a promotion on an event the actor organizes.

    Reservations already priced with the code keep their amounts. The usage
    cap cannot drop below the uses already claimed.
    """

    with unit_of_work(session):
        promotion = _load(session, promotion_id)
        _ensure_owns(promotion.event, actor, "update")

        values = changes.as_dict()
        if "code" in values:
            values["code"] = values["code"].strip()
        merged = {
            name: values.get(name, getattr(promotion, name))
            for name in ("code", "kind", "value", "starts_at", "ends_at", "min_spend_idr", "max_uses")
        }
        _validate_terms(**merged)
        if merged["max_uses"] is not None and merged["max_uses"] < promotion.uses_count:
            raise ValidationFailedError(
                f"Usage cap cannot be lower than the {promotion.uses_count} uses already claimed"
            )

        for name, value in values.items():
            setattr(promotion, name, value)
        _flush_unique(session, merged["code"])

    session.refresh(promotion)
    return promotion


def delete_promotion(session: Session, promotion_id: str, *, actor: Actor) -> None:
    """Delete a promotion; reservations that used it keep their priced totals."""

    with unit_of_work(session):
        promotion = _load(session, promotion_id)
        _ensure_owns(promotion.event, actor, "delete")
        session.execute(
            update(Reservation)
            .where(Reservation.promotion_id == promotion.id)
            .values(promotion_id=None)
            .execution_options(synchronize_session=False)
        )
        session.delete(promotion)


def list_promotions(session: Session, *, event_id: str | None = None) -> list[Promotion]:
    statement = select(Promotion).order_by(Promotion.starts_at.desc())
    if event_id is not None:
        statement = statement.where(Promotion.event_id == event_id)
    return list(session.scalars(statement))


def list_organizer_promotions(session: Session, *, actor: Actor) -> list[Promotion]:
    """Promotions on the events the actor organizes."""

    statement = (
        select(Promotion)
        .join(Event, Event.id == Promotion.event_id)
        .where(Event.organizer_id == actor.user_id)
        .order_by(Promotion.starts_at.desc())
    )
    return list(session.scalars(statement))


__all__ = [
    "PromotionChanges",
    "PromotionDraft",
    "create_promotion",
    "delete_promotion",
    "list_organizer_promotions",
    "list_promotions",
    "update_promotion",
]
