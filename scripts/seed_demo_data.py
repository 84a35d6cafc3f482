"""Seed script for demo users, events and reservations."""
from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from eventify.api.routes.auth import hash_password
from eventify.core.clock import utcnow
from eventify.db.session import SessionLocal, engine
from eventify.models import (
    Base,
    Event,
    Promotion,
    PromotionKind,
    Reservation,
    TicketType,
    User,
    UserRole,
)
from eventify.services.reservations import Actor, Decision, ReservationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password"

SEED_USERS = [
    ("admin@eventify.com", "Admin User", UserRole.ADMIN, 0),
    ("soundwave@eventify.com", "Soundwave Organizer", UserRole.ORGANIZER, 0),
    ("andi@mail.com", "andi", UserRole.CUSTOMER, 20000),
    ("budi@mail.com", "budi", UserRole.CUSTOMER, 35000),
    ("citra@mail.com", "citra", UserRole.CUSTOMER, 50000),
]


def _seed_users(session: Session) -> dict[str, User]:
    existing = {user.email: user for user in session.scalars(select(User))}
    hashed = hash_password(DEMO_PASSWORD)
    for email, name, role, points in SEED_USERS:
        if email in existing:
            logger.info("User %s already exists", email)
            continue
        user = User(email=email, name=name, role=role, hashed_password=hashed, points_balance=points)
        session.add(user)
        existing[email] = user
        logger.info("Added user %s", email)
    session.flush()
    return existing


def _seed_events(session: Session, organizer: User) -> tuple[Event, Event]:
    now = utcnow()
    festival = session.scalar(select(Event).where(Event.title == "Summer Beats Festival"))
    if festival is None:
        festival = Event(
            organizer_id=organizer.id,
            title="Summer Beats Festival",
            location="Jakarta",
            starts_at=now + timedelta(days=60),
            ends_at=now + timedelta(days=61, hours=8),
            capacity=5000,
            seats_available=4800,
        )
        festival.ticket_types = [
            TicketType(name="Regular", price_idr=250000, quota=4000),
            TicketType(name="VIP", price_idr=500000, quota=800),
        ]
        festival.promotions = [
            Promotion(
                code="EARLY10",
                kind=PromotionKind.PERCENT,
                value=10,
                min_spend_idr=100000,
                starts_at=now - timedelta(days=1),
                ends_at=now + timedelta(days=30),
                max_uses=100,
            )
        ]
        session.add(festival)
        logger.info("Created event %s", festival.title)

    showcase = session.scalar(select(Event).where(Event.title == "Indie Night Showcase"))
    if showcase is None:
        showcase = Event(
            organizer_id=organizer.id,
            title="Indie Night Showcase",
            location="Bandung",
            starts_at=now + timedelta(days=21),
            ends_at=now + timedelta(days=22),
            capacity=2000,
            seats_available=2000,
        )
        showcase.ticket_types = [TicketType(name="Free Pass", price_idr=0, quota=2000)]
        session.add(showcase)
        logger.info("Created event %s", showcase.title)

    session.flush()
    return festival, showcase


def _ticket_type(session: Session, event: Event, name: str) -> TicketType:
    return session.scalars(
        select(TicketType).where(TicketType.event_id == event.id, TicketType.name == name)
    ).one()


def _seed_reservations(session: Session, users: dict[str, User], festival: Event, showcase: Event) -> None:
    if session.scalar(select(Reservation.id).limit(1)) is not None:
        logger.info("Reservations already exist")
        return

    service = ReservationService(session)
    organizer = users["soundwave@eventify.com"]
    andi = users["andi@mail.com"]
    budi = users["budi@mail.com"]
    citra = users["citra@mail.com"]
    regular = _ticket_type(session, festival, "Regular")
    vip = _ticket_type(session, festival, "VIP")
    free_pass = _ticket_type(session, showcase, "Free Pass")

    approved = service.create_reservation(
        user_id=andi.id, event_id=festival.id, ticket_type_id=regular.id, quantity=1
    )
    service.submit_payment_proof(
        approved.id,
        actor=Actor(user_id=andi.id, role=UserRole.CUSTOMER),
        proof_ref="s3://eventify-payment-proofs/demo/andi-transfer.jpg",
    )
    service.decide(
        approved.id,
        actor=Actor(user_id=organizer.id, role=UserRole.ORGANIZER),
        decision=Decision.APPROVE,
    )

    service.create_reservation(
        user_id=budi.id,
        event_id=festival.id,
        ticket_type_id=vip.id,
        quantity=2,
        use_points=True,
        promo_code="EARLY10",
    )
    service.create_reservation(
        user_id=citra.id, event_id=showcase.id, ticket_type_id=free_pass.id, quantity=2
    )
    logger.info("Created demo reservations")


def seed(session: Session) -> None:
    """Seed demo users, two events and sample reservations."""

    users = _seed_users(session)
    festival, showcase = _seed_events(session, users["soundwave@eventify.com"])
    session.commit()
    _seed_reservations(session, users, festival, showcase)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed(session)
        session.commit()


if __name__ == "__main__":
    main()
