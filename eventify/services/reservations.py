"""Reservation lifecycle: checkout, payment proof, decisions and timeouts.

Every operation runs as one unit of work. Status changes are written through
the ``lock_version`` optimistic lock, and the reservation row is flushed
before any ledger, promotion or inventory side effect so a transition that
loses a race never applies its side effects.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from eventify.core.clock import ensure_utc, utcnow
from eventify.core.config import Settings, get_settings
from eventify.db.unit_of_work import unit_of_work
from eventify.models import (
    AuditLog,
    Event,
    Promotion,
    Reservation,
    ReservationItem,
    ReservationStatus,
    Ticket,
    TicketType,
    UserRole,
)
from eventify.obs import record_transition, start_span
from eventify.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from eventify.services.points import PointsLedger
from eventify.services.pricing import PromotionTerms, calculate_price

logger = logging.getLogger(__name__)


class Decision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(slots=True, frozen=True)
class Actor:
    """Authenticated caller as supplied by the auth layer."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


_ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.WAITING_PAYMENT: frozenset(
        {
            ReservationStatus.WAITING_CONFIRMATION,
            ReservationStatus.EXPIRED,
            ReservationStatus.CANCELED,
        }
    ),
    ReservationStatus.WAITING_CONFIRMATION: frozenset(
        {
            ReservationStatus.DONE,
            ReservationStatus.REJECTED,
            ReservationStatus.CANCELED,
        }
    ),
}

# Transitions that give held points and promo usage back.
_FORFEITING = frozenset(
    {ReservationStatus.REJECTED, ReservationStatus.CANCELED, ReservationStatus.EXPIRED}
)


class ReservationService:
    """State machine over :class:`Reservation` rows."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._clock = clock or utcnow
        self._ledger = PointsLedger(session)

    @property
    def payment_window(self) -> timedelta:
        return timedelta(minutes=self._settings.payment_window_minutes)

    @property
    def decision_window(self) -> timedelta:
        return timedelta(hours=self._settings.decision_window_hours)

    def create_reservation(
        self,
        *,
        user_id: str,
        event_id: str,
        ticket_type_id: str,
        quantity: int,
        use_points: bool = False,
        promo_code: str | None = None,
        now: datetime | None = None,
    ) -> Reservation:
        """Price a checkout and persist it together with its points debit."""

        current = ensure_utc(now or self._clock())
        if quantity < 1 or quantity > self._settings.max_tickets_per_checkout:
            raise ValidationFailedError(
                f"Quantity must be between 1 and {self._settings.max_tickets_per_checkout}"
            )
        code = (promo_code or "").strip() or None

        with start_span("reservation.create", event_id=event_id, user_id=user_id):
            with unit_of_work(self._session):
                event = self._session.get(Event, event_id)
                if event is None:
                    raise NotFoundError(f"Event '{event_id}' was not found")
                ticket_type = self._session.get(TicketType, ticket_type_id)
                if ticket_type is None or ticket_type.event_id != event.id:
                    raise NotFoundError(
                        f"Ticket type '{ticket_type_id}' was not found for event '{event_id}'"
                    )
                _ensure_available(event, ticket_type, quantity)

                balance = self._ledger.balance(user_id)
                promotion = self._find_promotion(event.id, code) if code else None
                quote = calculate_price(
                    int(ticket_type.price_idr),
                    quantity,
                    now=current,
                    event_id=event.id,
                    promo_code=code,
                    promotion=promotion,
                    points_balance=balance,
                    use_points=use_points,
                )
                if quote.payable < 0:
                    raise ValidationFailedError("Computed payable total is negative")
                if quote.promotion is not None:
                    self._claim_promotion(quote.promotion)

                reservation = Reservation(
                    user_id=user_id,
                    event_id=event.id,
                    promotion_id=quote.promotion.id if quote.promotion else None,
                    promo_code=code,
                    total_before_idr=quote.subtotal,
                    promo_discount_idr=quote.promo_discount,
                    points_used_idr=quote.points_used,
                    total_payable_idr=quote.payable,
                    created_at=current,
                    updated_at=current,
                )
                if quote.is_free:
                    reservation.status = ReservationStatus.WAITING_CONFIRMATION
                    reservation.decision_due_at = current + self.decision_window
                else:
                    reservation.status = ReservationStatus.WAITING_PAYMENT
                    reservation.expires_at = current + self.payment_window
                reservation.items.append(
                    ReservationItem(
                        ticket_type_id=ticket_type.id,
                        quantity=quantity,
                        unit_price_idr=quote.unit_price,
                        line_total_idr=quote.subtotal,
                    )
                )
                self._session.add(reservation)
                self._session.flush()

                if quote.points_used:
                    self._ledger.debit(
                        user_id,
                        quote.points_used,
                        reason="Points redeemed at checkout",
                        reservation_id=reservation.id,
                    )
                self._audit(
                    reservation,
                    actor_id=user_id,
                    action="reservation.create",
                    payload={
                        "status": reservation.status.value,
                        "subtotal": quote.subtotal,
                        "promo_discount": quote.promo_discount,
                        "points_used": quote.points_used,
                        "payable": quote.payable,
                    },
                )
                status = reservation.status.value
                reservation_id = reservation.id

        record_transition("NEW", status)
        logger.info(
            "reservation created",
            extra={"reservation_id": reservation_id, "status": status, "payable": quote.payable},
        )
        return reservation

    def submit_payment_proof(
        self,
        reservation_id: str,
        *,
        actor: Actor,
        proof_ref: str,
        now: datetime | None = None,
    ) -> Reservation:
        """Attach a payment proof; moves WAITING_PAYMENT to WAITING_CONFIRMATION.

        A reservation already waiting for confirmation accepts a replacement
        proof without changing state or its decision deadline.
        """

        current = ensure_utc(now or self._clock())
        reference = (proof_ref or "").strip()
        if not reference:
            raise ValidationFailedError("Payment proof reference is required")

        with unit_of_work(self._session):
            reservation = self._load(reservation_id)
            if reservation.user_id != actor.user_id:
                raise ForbiddenError("Only the reservation owner can submit a payment proof")

            if reservation.status == ReservationStatus.WAITING_CONFIRMATION:
                reservation.payment_proof_url = reference
                reservation.payment_proof_at = current
                reservation.updated_at = current
                self._flush_versioned(reservation)
                self._audit(
                    reservation,
                    actor_id=actor.user_id,
                    action="reservation.proof_replaced",
                    payload={"payment_proof_url": reference},
                )
            else:
                self._transition(
                    reservation,
                    ReservationStatus.WAITING_CONFIRMATION,
                    actor_id=actor.user_id,
                    now=current,
                    changes={
                        "payment_proof_url": reference,
                        "payment_proof_at": current,
                        "decision_due_at": current + self.decision_window,
                    },
                )
        return reservation

    def decide(
        self,
        reservation_id: str,
        *,
        actor: Actor,
        decision: Decision | str,
        now: datetime | None = None,
    ) -> Reservation:
        """Approve (issue tickets) or reject (refund holds) a reservation."""

        current = ensure_utc(now or self._clock())
        try:
            choice = Decision(decision)
        except ValueError as exc:
            raise ValidationFailedError(f"Unknown decision '{decision}'") from exc
        target = ReservationStatus.DONE if choice is Decision.APPROVE else ReservationStatus.REJECTED

        with start_span("reservation.decide", reservation_id=reservation_id, decision=choice.value):
            with unit_of_work(self._session):
                reservation = self._load(reservation_id)
                self._ensure_manages(reservation, actor)
                self._transition(
                    reservation,
                    target,
                    actor_id=actor.user_id,
                    now=current,
                    changes={"decided_at": current},
                )
        return reservation

    def cancel(
        self,
        reservation_id: str,
        *,
        actor: Actor,
        now: datetime | None = None,
    ) -> Reservation:
        current = ensure_utc(now or self._clock())
        with unit_of_work(self._session):
            reservation = self._load(reservation_id)
            if reservation.user_id != actor.user_id:
                self._ensure_manages(reservation, actor)
            self._transition(
                reservation,
                ReservationStatus.CANCELED,
                actor_id=actor.user_id,
                now=current,
            )
        return reservation

    def expire_overdue(self, reservation_id: str, *, now: datetime | None = None) -> Reservation:
        """Expire an unpaid reservation whose payment deadline has passed."""

        current = ensure_utc(now or self._clock())
        with unit_of_work(self._session):
            reservation = self._load(reservation_id)
            if (
                reservation.status != ReservationStatus.WAITING_PAYMENT
                or reservation.expires_at is None
                or ensure_utc(reservation.expires_at) >= current
            ):
                raise InvalidStateTransitionError(
                    f"Reservation '{reservation_id}' is not awaiting payment past its deadline"
                )
            self._transition(reservation, ReservationStatus.EXPIRED, actor_id=None, now=current)
        return reservation

    def cancel_overdue(self, reservation_id: str, *, now: datetime | None = None) -> Reservation:
        """Cancel a reservation the organizer did not decide on in time."""

        current = ensure_utc(now or self._clock())
        with unit_of_work(self._session):
            reservation = self._load(reservation_id)
            if (
                reservation.status != ReservationStatus.WAITING_CONFIRMATION
                or reservation.decision_due_at is None
                or ensure_utc(reservation.decision_due_at) >= current
            ):
                raise InvalidStateTransitionError(
                    f"Reservation '{reservation_id}' is not awaiting a decision past its deadline"
                )
            self._transition(reservation, ReservationStatus.CANCELED, actor_id=None, now=current)
        return reservation

    def get_reservation(self, reservation_id: str, *, actor: Actor) -> Reservation:
        reservation = self._load(reservation_id)
        if reservation.user_id != actor.user_id:
            self._ensure_manages(reservation, actor)
        return reservation

    def list_for_user(self, user_id: str) -> list[Reservation]:
        statement = (
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.created_at.desc())
        )
        return list(self._session.scalars(statement))

    def list_for_organizer(
        self, actor: Actor, *, status: ReservationStatus | None = None
    ) -> list[Reservation]:
        """Reservations for the actor's events; admins see every event."""

        if actor.role not in (UserRole.ORGANIZER, UserRole.ADMIN):
            raise ForbiddenError("Only organizers can manage reservations")
        statement = select(Reservation).join(Event, Event.id == Reservation.event_id)
        if not actor.is_admin:
            statement = statement.where(Event.organizer_id == actor.user_id)
        if status is not None:
            statement = statement.where(Reservation.status == status)
        statement = statement.order_by(Reservation.created_at.desc())
        return list(self._session.scalars(statement))

    def _load(self, reservation_id: str) -> Reservation:
        reservation = self._session.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation '{reservation_id}' was not found")
        return reservation

    def _ensure_manages(self, reservation: Reservation, actor: Actor) -> None:
        if actor.is_admin:
            return
        if actor.role == UserRole.ORGANIZER and reservation.event.organizer_id == actor.user_id:
            return
        raise ForbiddenError("Not allowed to manage reservations for this event")

    def _find_promotion(self, event_id: str, code: str) -> PromotionTerms | None:
        promotion = self._session.scalar(
            select(Promotion).where(Promotion.event_id == event_id, Promotion.code == code)
        )
        return PromotionTerms.from_model(promotion) if promotion is not None else None

    def _claim_promotion(self, promotion: PromotionTerms) -> None:
        result = self._session.execute(
            update(Promotion)
            .where(
                Promotion.id == promotion.id,
                or_(Promotion.max_uses.is_(None), Promotion.uses_count < Promotion.max_uses),
            )
            .values(uses_count=Promotion.uses_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ValidationFailedError(f"Promo code '{promotion.code}' has reached its usage limit")

    def _flush_versioned(self, reservation: Reservation) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise InvalidStateTransitionError(
                f"Reservation '{reservation.id}' was modified concurrently"
            ) from exc

    def _transition(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        *,
        actor_id: str | None,
        now: datetime,
        changes: dict[str, Any] | None = None,
    ) -> None:
        source = ReservationStatus(reservation.status)
        if source.is_terminal:
            raise InvalidStateTransitionError(
                f"Reservation '{reservation.id}' is already {source.value} and cannot change"
            )
        if target not in _ALLOWED_TRANSITIONS[source]:
            raise InvalidStateTransitionError(
                f"Cannot move reservation '{reservation.id}' from {source.value} to {target.value}"
            )

        for field, value in (changes or {}).items():
            setattr(reservation, field, value)
        reservation.status = target
        reservation.updated_at = now
        self._flush_versioned(reservation)

        if target in _FORFEITING:
            self._release_holds(reservation, target)
        elif target == ReservationStatus.DONE:
            self._issue_tickets(reservation)

        self._audit(
            reservation,
            actor_id=actor_id,
            action=f"reservation.{target.value.lower()}",
            payload={"from": source.value, "to": target.value},
        )
        record_transition(source.value, target.value)
        logger.info(
            "reservation transitioned",
            extra={
                "reservation_id": reservation.id,
                "from_status": source.value,
                "to_status": target.value,
                "actor_id": actor_id,
            },
        )

    def _release_holds(self, reservation: Reservation, target: ReservationStatus) -> None:
        if reservation.points_used_idr > 0:
            self._ledger.credit(
                reservation.user_id,
                int(reservation.points_used_idr),
                reason=f"Points returned for {target.value.lower()} reservation",
                reservation_id=reservation.id,
            )
        if reservation.promotion_id is not None:
            self._session.execute(
                update(Promotion)
                .where(Promotion.id == reservation.promotion_id, Promotion.uses_count > 0)
                .values(uses_count=Promotion.uses_count - 1)
                .execution_options(synchronize_session=False)
            )

    def _issue_tickets(self, reservation: Reservation) -> None:
        for item in reservation.items:
            sold = self._session.execute(
                update(TicketType)
                .where(
                    TicketType.id == item.ticket_type_id,
                    or_(
                        TicketType.quota.is_(None),
                        TicketType.sold + item.quantity <= TicketType.quota,
                    ),
                )
                .values(sold=TicketType.sold + item.quantity)
                .execution_options(synchronize_session=False)
            )
            if sold.rowcount != 1:
                raise ConflictError(f"Ticket type '{item.ticket_type_id}' is sold out")

            seated = self._session.execute(
                update(Event)
                .where(Event.id == reservation.event_id, Event.seats_available >= item.quantity)
                .values(seats_available=Event.seats_available - item.quantity)
                .execution_options(synchronize_session=False)
            )
            if seated.rowcount != 1:
                raise ConflictError(f"Event '{reservation.event_id}' has no seats left")

            for _ in range(item.quantity):
                self._session.add(
                    Ticket(
                        reservation_id=reservation.id,
                        ticket_type_id=item.ticket_type_id,
                        event_id=reservation.event_id,
                        holder_id=reservation.user_id,
                    )
                )
        self._session.flush()

    def _audit(
        self,
        reservation: Reservation,
        *,
        actor_id: str | None,
        action: str,
        payload: dict[str, Any],
    ) -> None:
        self._session.add(
            AuditLog(
                actor_id=actor_id,
                action=action,
                resource_type="Reservation",
                resource_id=reservation.id,
                payload=payload,
            )
        )


def _ensure_available(event: Event, ticket_type: TicketType, quantity: int) -> None:
    remaining = ticket_type.remaining
    if remaining is not None and remaining < quantity:
        raise ConflictError(f"Only {max(remaining, 0)} '{ticket_type.name}' tickets remain")
    if event.seats_available < quantity:
        raise ConflictError(f"Only {event.seats_available} seats remain for this event")


__all__ = ["Actor", "Decision", "ReservationService"]
