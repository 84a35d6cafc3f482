from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from eventify.models import AuditLog, PointsLedgerEntry, Reservation, ReservationStatus, Ticket
from eventify.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from eventify.services.points import PointsLedger
from eventify.services.reservations import Decision, ReservationService
from tests.conftest import NOW, TicketingWorld

PROOF = "s3://eventify-payment-proofs/proofs/transactions/demo.jpg"


def _checkout(service: ReservationService, world: TicketingWorld, **overrides: object) -> Reservation:
    params: dict[str, object] = {
        "user_id": world.customer.id,
        "event_id": world.festival.id,
        "ticket_type_id": world.regular.id,
        "quantity": 2,
        "now": NOW,
    }
    params.update(overrides)
    return service.create_reservation(**params)  # type: ignore[arg-type]


def _paid_and_waiting(service: ReservationService, world: TicketingWorld, **overrides: object) -> Reservation:
    reservation = _checkout(service, world, **overrides)
    return service.submit_payment_proof(
        reservation.id,
        actor=world.actor(world.customer),
        proof_ref=PROOF,
        now=NOW + timedelta(minutes=30),
    )


def test_paid_checkout_waits_for_payment(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)

    reservation = _checkout(service, world, use_points=True, promo_code="EARLY10")

    assert reservation.status == ReservationStatus.WAITING_PAYMENT
    assert reservation.total_before_idr == 500000
    assert reservation.promo_discount_idr == 50000
    assert reservation.points_used_idr == 20000
    assert reservation.total_payable_idr == 430000
    assert reservation.expires_at is not None
    assert reservation.expires_at.replace(tzinfo=None) == (NOW + timedelta(hours=2)).replace(tzinfo=None)
    assert reservation.decision_due_at is None
    assert [item.line_total_idr for item in reservation.items] == [500000]

    assert PointsLedger(db_session).balance(world.customer.id) == 0
    db_session.refresh(world.early10)
    assert world.early10.uses_count == 1


def test_free_checkout_skips_payment(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)

    reservation = _checkout(
        service, world, event_id=world.showcase.id, ticket_type_id=world.free_pass.id, quantity=3
    )

    assert reservation.status == ReservationStatus.WAITING_CONFIRMATION
    assert reservation.total_payable_idr == 0
    assert reservation.expires_at is None
    assert reservation.decision_due_at is not None
    assert reservation.decision_due_at.replace(tzinfo=None) == (NOW + timedelta(days=3)).replace(tzinfo=None)


def test_points_covering_total_skip_payment(db_session: Session, world: TicketingWorld) -> None:
    world.regular.price_idr = 15000
    db_session.commit()
    service = ReservationService(db_session)

    reservation = _checkout(service, world, quantity=1, use_points=True)

    assert reservation.status == ReservationStatus.WAITING_CONFIRMATION
    assert reservation.points_used_idr == 15000
    assert PointsLedger(db_session).balance(world.customer.id) == 5000


def test_failed_checkout_leaves_no_trace(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)

    with pytest.raises(NotFoundError):
        _checkout(service, world, use_points=True, promo_code="UNKNOWN")

    assert db_session.scalar(select(func.count()).select_from(Reservation)) == 0
    assert PointsLedger(db_session).balance(world.customer.id) == 20000


def test_checkout_rejects_sold_out_ticket_type(db_session: Session, world: TicketingWorld) -> None:
    world.vip.sold = 799
    db_session.commit()

    with pytest.raises(ConflictError):
        _checkout(ReservationService(db_session), world, ticket_type_id=world.vip.id, quantity=2)


@pytest.mark.parametrize("quantity", [0, 11])
def test_checkout_rejects_quantity_out_of_range(
    db_session: Session, world: TicketingWorld, quantity: int
) -> None:
    with pytest.raises(ValidationFailedError):
        _checkout(ReservationService(db_session), world, quantity=quantity)


def test_ticket_type_from_other_event_is_not_found(db_session: Session, world: TicketingWorld) -> None:
    with pytest.raises(NotFoundError):
        _checkout(ReservationService(db_session), world, ticket_type_id=world.free_pass.id)


def test_proof_moves_reservation_to_confirmation(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)

    reservation = _paid_and_waiting(service, world)

    assert reservation.status == ReservationStatus.WAITING_CONFIRMATION
    assert reservation.payment_proof_url == PROOF
    expected_due = NOW + timedelta(minutes=30) + timedelta(days=3)
    assert reservation.decision_due_at.replace(tzinfo=None) == expected_due.replace(tzinfo=None)


def test_resubmitted_proof_keeps_decision_deadline(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _paid_and_waiting(service, world)
    due = reservation.decision_due_at

    updated = service.submit_payment_proof(
        reservation.id,
        actor=world.actor(world.customer),
        proof_ref="s3://eventify-payment-proofs/second.png",
        now=NOW + timedelta(hours=5),
    )

    assert updated.status == ReservationStatus.WAITING_CONFIRMATION
    assert updated.payment_proof_url == "s3://eventify-payment-proofs/second.png"
    assert updated.decision_due_at == due


def test_only_owner_submits_proof(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _checkout(service, world)

    with pytest.raises(ForbiddenError):
        service.submit_payment_proof(
            reservation.id, actor=world.actor(world.other_customer), proof_ref=PROOF, now=NOW
        )
    with pytest.raises(ValidationFailedError):
        service.submit_payment_proof(reservation.id, actor=world.actor(world.customer), proof_ref="  ")


def test_approval_issues_tickets_and_consumes_inventory(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _paid_and_waiting(service, world, quantity=3)

    approved = service.decide(
        reservation.id, actor=world.actor(world.organizer), decision=Decision.APPROVE, now=NOW
    )

    assert approved.status == ReservationStatus.DONE
    assert approved.decided_at is not None
    tickets = db_session.scalars(select(Ticket).where(Ticket.reservation_id == reservation.id)).all()
    assert len(tickets) == 3
    assert {ticket.holder_id for ticket in tickets} == {world.customer.id}
    db_session.refresh(world.regular)
    db_session.refresh(world.festival)
    assert world.regular.sold == 3
    assert world.festival.seats_available == 4797


def test_rejection_returns_points_and_promo_use(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _paid_and_waiting(service, world, use_points=True, promo_code="EARLY10")

    rejected = service.decide(reservation.id, actor=world.actor(world.organizer), decision="reject", now=NOW)

    assert rejected.status == ReservationStatus.REJECTED
    assert PointsLedger(db_session).balance(world.customer.id) == 20000
    reasons = [entry.reason for entry in PointsLedger(db_session).history(world.customer.id)]
    assert reasons == ["Points returned for rejected reservation", "Points redeemed at checkout"]
    db_session.refresh(world.early10)
    assert world.early10.uses_count == 0
    assert db_session.scalar(select(func.count()).select_from(Ticket)) == 0


def test_owner_cancels_unpaid_reservation(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _checkout(service, world, use_points=True)

    canceled = service.cancel(reservation.id, actor=world.actor(world.customer), now=NOW)

    assert canceled.status == ReservationStatus.CANCELED
    assert PointsLedger(db_session).balance(world.customer.id) == 20000


def _snapshot(db_session: Session, reservation_id: str) -> dict[str, object]:
    db_session.expire_all()
    stored = db_session.get(Reservation, reservation_id)
    return {
        "status": stored.status,
        "payment_proof_url": stored.payment_proof_url,
        "payment_proof_at": stored.payment_proof_at,
        "decision_due_at": stored.decision_due_at,
        "decided_at": stored.decided_at,
        "updated_at": stored.updated_at,
        "lock_version": stored.lock_version,
        "ledger_entries": db_session.scalar(
            select(func.count()).select_from(PointsLedgerEntry).where(
                PointsLedgerEntry.reservation_id == reservation_id
            )
        ),
        "tickets": db_session.scalar(
            select(func.count()).select_from(Ticket).where(Ticket.reservation_id == reservation_id)
        ),
        "balance": PointsLedger(db_session).balance(stored.user_id),
    }


def test_terminal_reservations_reject_every_transition(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _paid_and_waiting(service, world, use_points=True)
    service.decide(reservation.id, actor=world.actor(world.organizer), decision="approve", now=NOW)
    before = _snapshot(db_session, reservation.id)

    with pytest.raises(InvalidStateTransitionError):
        service.cancel(reservation.id, actor=world.actor(world.customer), now=NOW + timedelta(hours=1))
    with pytest.raises(InvalidStateTransitionError):
        service.decide(
            reservation.id, actor=world.actor(world.organizer), decision="reject", now=NOW + timedelta(hours=1)
        )
    with pytest.raises(InvalidStateTransitionError):
        service.submit_payment_proof(
            reservation.id,
            actor=world.actor(world.customer),
            proof_ref="s3://eventify-payment-proofs/other.jpg",
            now=NOW + timedelta(hours=1),
        )

    after = _snapshot(db_session, reservation.id)
    assert after == before
    assert after["status"] == ReservationStatus.DONE
    assert after["tickets"] == 2
    assert after["balance"] == 0


def test_decision_requires_owning_organizer(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _paid_and_waiting(service, world)

    with pytest.raises(ForbiddenError):
        service.decide(reservation.id, actor=world.actor(world.other_organizer), decision="approve")
    with pytest.raises(ForbiddenError):
        service.decide(reservation.id, actor=world.actor(world.customer), decision="approve")
    with pytest.raises(ValidationFailedError):
        service.decide(reservation.id, actor=world.actor(world.organizer), decision="maybe")

    approved = service.decide(reservation.id, actor=world.actor(world.admin), decision="approve", now=NOW)
    assert approved.status == ReservationStatus.DONE


def test_approval_fails_when_inventory_ran_out(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _paid_and_waiting(service, world, ticket_type_id=world.vip.id, quantity=2)
    world.vip.sold = 799
    db_session.commit()

    with pytest.raises(ConflictError):
        service.decide(reservation.id, actor=world.actor(world.organizer), decision="approve", now=NOW)

    db_session.expire_all()
    assert db_session.get(Reservation, reservation.id).status == ReservationStatus.WAITING_CONFIRMATION
    assert db_session.scalar(select(func.count()).select_from(Ticket)) == 0


def test_losing_concurrent_transition_applies_no_side_effects(
    db_session: Session, world: TicketingWorld, session_factory
) -> None:
    reservation = _paid_and_waiting(ReservationService(db_session), world, use_points=True)
    customer = world.actor(world.customer)
    organizer = world.actor(world.organizer)

    winner = session_factory()
    loser = session_factory()
    try:
        loser.get(Reservation, reservation.id)
        ReservationService(winner).decide(reservation.id, actor=organizer, decision="approve", now=NOW)

        with pytest.raises(InvalidStateTransitionError):
            ReservationService(loser).cancel(reservation.id, actor=customer, now=NOW)
    finally:
        winner.close()
        loser.close()

    db_session.expire_all()
    assert db_session.get(Reservation, reservation.id).status == ReservationStatus.DONE
    assert PointsLedger(db_session).balance(world.customer.id) == 0
    credits = db_session.scalar(
        select(func.count()).select_from(PointsLedgerEntry).where(PointsLedgerEntry.delta_idr > 0)
    )
    assert credits == 0


def test_lifecycle_actions_are_audited(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _paid_and_waiting(service, world)
    service.decide(reservation.id, actor=world.actor(world.organizer), decision="approve", now=NOW)

    actions = db_session.scalars(
        select(AuditLog.action).where(AuditLog.resource_id == reservation.id).order_by(AuditLog.created_at)
    ).all()

    assert set(actions) == {
        "reservation.create",
        "reservation.waiting_confirmation",
        "reservation.done",
    }


def test_organizer_listing_is_scoped_to_own_events(db_session: Session, world: TicketingWorld) -> None:
    service = ReservationService(db_session)
    reservation = _checkout(service, world)

    own = service.list_for_organizer(world.actor(world.organizer))
    other = service.list_for_organizer(world.actor(world.other_organizer))
    everything = service.list_for_organizer(
        world.actor(world.admin), status=ReservationStatus.WAITING_PAYMENT
    )

    assert [item.id for item in own] == [reservation.id]
    assert other == []
    assert [item.id for item in everything] == [reservation.id]
    with pytest.raises(ForbiddenError):
        service.list_for_organizer(world.actor(world.customer))
