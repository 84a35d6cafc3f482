from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from io import BytesIO
from pathlib import Path
import sys

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("ENABLE_TRACING", "false")

import bcrypt
import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from eventify.api.deps import get_db_session, get_session_factory
from eventify.api.routes.auth import create_access_token
from eventify.core.config import get_settings
from eventify.main import app
from eventify.models import (
    Base,
    Event,
    Promotion,
    PromotionKind,
    TicketType,
    User,
    UserRole,
)
from eventify.services.reservations import Actor

NOW = datetime(2025, 7, 1, 9, 0, tzinfo=UTC)
TEST_PASSWORD = "s3cret-pass"


class InMemoryS3Client:
    """Simple in-memory S3 stub used by payment proof storage during tests."""

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, bytes]] = {}
        self.metadata: dict[str, dict[str, str]] = {}

    def head_bucket(self, *, Bucket: str) -> None:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")

    def create_bucket(self, *, Bucket: str, **_: object) -> None:
        self._buckets.setdefault(Bucket, {})

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, BytesIO]:
        return {"Body": BytesIO(self._buckets[Bucket][Key])}

    def put_object(
        self,
        *,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str | None = None,
        Metadata: dict[str, str] | None = None,
        **_: object,
    ) -> dict[str, str]:
        bucket = self._buckets.setdefault(Bucket, {})
        bucket[Key] = Body
        self.metadata[Key] = dict(Metadata or {})
        return {"ETag": "in-memory"}

    @property
    def buckets(self) -> dict[str, dict[str, bytes]]:
        return self._buckets


engine = create_engine(
    "sqlite+pysqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@dataclass
class TicketingWorld:
    """Users, events and ticket types shared by most tests."""

    admin: User
    organizer: User
    other_organizer: User
    customer: User
    other_customer: User
    festival: Event
    regular: TicketType
    vip: TicketType
    showcase: Event
    free_pass: TicketType
    early10: Promotion

    def actor(self, user: User) -> Actor:
        return Actor(user_id=user.id, role=UserRole(user.role))


@pytest.fixture(autouse=True)
def s3_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[InMemoryS3Client]:
    client = InMemoryS3Client()

    def _client_factory(*args: object, **kwargs: object) -> InMemoryS3Client:
        return client

    monkeypatch.setattr("eventify.services.proofs.boto3.client", _client_factory)
    yield client


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def session_factory(db_session: Session) -> Callable[[], Session]:
    return TestingSessionLocal


@pytest.fixture()
def world(db_session: Session) -> TicketingWorld:
    hashed = bcrypt.hashpw(TEST_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")

    def _user(email: str, role: UserRole, points: int = 0) -> User:
        user = User(email=email, name=email.split("@")[0], role=role, hashed_password=hashed, points_balance=points)
        db_session.add(user)
        return user

    admin = _user("admin@eventify.com", UserRole.ADMIN)
    organizer = _user("soundwave@eventify.com", UserRole.ORGANIZER)
    other_organizer = _user("other@eventify.com", UserRole.ORGANIZER)
    customer = _user("andi@mail.com", UserRole.CUSTOMER, points=20000)
    other_customer = _user("budi@mail.com", UserRole.CUSTOMER, points=0)
    db_session.flush()

    festival = Event(
        organizer_id=organizer.id,
        title="Summer Beats Festival",
        location="Jakarta",
        starts_at=NOW + timedelta(days=40),
        ends_at=NOW + timedelta(days=41),
        capacity=5000,
        seats_available=4800,
    )
    showcase = Event(
        organizer_id=organizer.id,
        title="Indie Night Showcase",
        location="Bandung",
        starts_at=NOW + timedelta(days=20),
        ends_at=NOW + timedelta(days=21),
        capacity=2000,
        seats_available=2000,
    )
    db_session.add_all([festival, showcase])
    db_session.flush()

    regular = TicketType(event_id=festival.id, name="Regular", price_idr=250000, quota=4000)
    vip = TicketType(event_id=festival.id, name="VIP", price_idr=500000, quota=800)
    free_pass = TicketType(event_id=showcase.id, name="Free Pass", price_idr=0, quota=2000)
    early10 = Promotion(
        event_id=festival.id,
        code="EARLY10",
        kind=PromotionKind.PERCENT,
        value=10,
        min_spend_idr=100000,
        starts_at=datetime(2025, 6, 1, tzinfo=UTC),
        ends_at=datetime(2025, 8, 1, tzinfo=UTC),
        max_uses=100,
    )
    db_session.add_all([regular, vip, free_pass, early10])
    db_session.commit()

    return TicketingWorld(
        admin=admin,
        organizer=organizer,
        other_organizer=other_organizer,
        customer=customer,
        other_customer=other_customer,
        festival=festival,
        regular=regular,
        vip=vip,
        showcase=showcase,
        free_pass=free_pass,
        early10=early10,
    )


@pytest.fixture()
def client(db_session: Session) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)
    app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user=user, settings=get_settings())
        return {"Authorization": f"Bearer {token}"}

    return _headers
