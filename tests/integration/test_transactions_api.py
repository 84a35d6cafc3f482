from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from eventify.core.clock import utcnow
from eventify.models import Promotion, PromotionKind, Reservation, ReservationStatus, User
from tests.conftest import TEST_PASSWORD, InMemoryS3Client, TicketingWorld

Headers = Callable[[User], dict[str, str]]


def _activate_early10(db_session: Session, world: TicketingWorld) -> None:
    now = utcnow()
    world.early10.starts_at = now - timedelta(days=1)
    world.early10.ends_at = now + timedelta(days=1)
    db_session.commit()


def _checkout(client: TestClient, world: TicketingWorld, auth_headers: Headers, **overrides: object):
    payload: dict[str, object] = {
        "event_id": world.festival.id,
        "ticket_type_id": world.regular.id,
        "quantity": 2,
    }
    payload.update(overrides)
    return client.post("/api/transactions", json=payload, headers=auth_headers(world.customer))


def _upload_proof(client: TestClient, reservation_id: str, headers: dict[str, str]):
    return client.post(
        f"/api/transactions/{reservation_id}/proof",
        content=b"\xff\xd8\xff\xe0 fake jpeg",
        headers={**headers, "content-type": "image/jpeg", "x-upload-filename": "transfer.jpg"},
    )


def test_login_issues_token_for_stored_user(client: TestClient, world: TicketingWorld) -> None:
    response = client.post(
        "/api/auth/login", json={"email": "andi@mail.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/points/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["balance_idr"] == 20000

    rejected = client.post("/api/auth/login", json={"email": "andi@mail.com", "password": "wrong"})
    assert rejected.status_code == 401


def test_full_paid_flow_through_api(
    client: TestClient,
    world: TicketingWorld,
    auth_headers: Headers,
    db_session: Session,
    s3_client: InMemoryS3Client,
) -> None:
    _activate_early10(db_session, world)

    created = _checkout(client, world, auth_headers, use_points=True, promo_code="EARLY10")
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "WAITING_PAYMENT"
    assert body["total_before_idr"] == 500000
    assert body["promo_discount_idr"] == 50000
    assert body["points_used_idr"] == 20000
    assert body["total_payable_idr"] == 430000
    reservation_id = body["id"]

    proof = _upload_proof(client, reservation_id, auth_headers(world.customer))
    assert proof.status_code == 200
    assert proof.json()["status"] == "WAITING_CONFIRMATION"
    location = proof.json()["payment_proof_url"]
    assert location.startswith("s3://eventify-payment-proofs/proofs/transactions/")
    stored_keys = list(s3_client.buckets["eventify-payment-proofs"])
    assert len(stored_keys) == 1 and location.endswith(stored_keys[0])

    managed = client.get(
        "/api/transactions/manage",
        params={"status": "WAITING_CONFIRMATION"},
        headers=auth_headers(world.organizer),
    )
    assert [item["id"] for item in managed.json()] == [reservation_id]

    decided = client.post(
        f"/api/transactions/{reservation_id}/decision",
        json={"decision": "approve"},
        headers=auth_headers(world.organizer),
    )
    assert decided.status_code == 200
    assert decided.json()["status"] == "DONE"

    again = client.post(
        f"/api/transactions/{reservation_id}/cancel", headers=auth_headers(world.customer)
    )
    assert again.status_code == 409

    mine = client.get("/api/transactions", headers=auth_headers(world.customer))
    assert [item["status"] for item in mine.json()] == ["DONE"]


def test_free_checkout_waits_for_confirmation(
    client: TestClient, world: TicketingWorld, auth_headers: Headers
) -> None:
    response = _checkout(
        client, world, auth_headers, event_id=world.showcase.id, ticket_type_id=world.free_pass.id
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "WAITING_CONFIRMATION"
    assert body["expires_at"] is None
    assert body["decision_due_at"] is not None


def test_domain_errors_map_to_http_status(
    client: TestClient, world: TicketingWorld, auth_headers: Headers, db_session: Session
) -> None:
    assert _checkout(client, world, auth_headers, promo_code="MISSING").status_code == 404
    assert _checkout(client, world, auth_headers, quantity=25).status_code == 422

    created = _checkout(client, world, auth_headers)
    reservation_id = created.json()["id"]

    foreign = client.post(
        f"/api/transactions/{reservation_id}/decision",
        json={"decision": "reject"},
        headers=auth_headers(world.other_organizer),
    )
    assert foreign.status_code == 403

    peek = client.get(f"/api/transactions/{reservation_id}", headers=auth_headers(world.other_customer))
    assert peek.status_code == 403

    not_paid = client.post(
        f"/api/transactions/{reservation_id}/decision",
        json={"decision": "approve"},
        headers=auth_headers(world.organizer),
    )
    assert not_paid.status_code == 409

    customer_decides = client.post(
        f"/api/transactions/{reservation_id}/decision",
        json={"decision": "approve"},
        headers=auth_headers(world.customer),
    )
    assert customer_decides.status_code == 403

    missing = client.get("/api/transactions/unknown", headers=auth_headers(world.customer))
    assert missing.status_code == 404


def test_proof_upload_validation(
    client: TestClient, world: TicketingWorld, auth_headers: Headers, s3_client: InMemoryS3Client
) -> None:
    reservation_id = _checkout(client, world, auth_headers).json()["id"]

    wrong_type = client.post(
        f"/api/transactions/{reservation_id}/proof",
        content=b"plain text",
        headers={**auth_headers(world.customer), "content-type": "text/plain"},
    )
    assert wrong_type.status_code == 422

    stranger = _upload_proof(client, reservation_id, auth_headers(world.other_customer))
    assert stranger.status_code == 403
    assert s3_client.buckets.get("eventify-payment-proofs", {}) == {}


def test_admin_sweep_expires_overdue_reservations(
    client: TestClient, world: TicketingWorld, auth_headers: Headers, db_session: Session
) -> None:
    reservation_id = _checkout(client, world, auth_headers).json()["id"]
    reservation = db_session.get(Reservation, reservation_id)
    reservation.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    forbidden = client.post("/api/transactions/sweep", headers=auth_headers(world.organizer))
    assert forbidden.status_code == 403

    response = client.post("/api/transactions/sweep", headers=auth_headers(world.admin))
    assert response.status_code == 200
    assert response.json() == {"expired": 1, "canceled": 0, "skipped": 0, "failed": 0}

    db_session.expire_all()
    assert db_session.get(Reservation, reservation_id).status == ReservationStatus.EXPIRED


def test_promotions_api(
    client: TestClient, world: TicketingWorld, auth_headers: Headers, db_session: Session
) -> None:
    now = utcnow()
    payload = {
        "event_id": world.festival.id,
        "code": "FLASH50K",
        "kind": PromotionKind.FIXED.value,
        "value": 50000,
        "min_spend_idr": 0,
        "starts_at": (now - timedelta(hours=1)).isoformat(),
        "ends_at": (now + timedelta(hours=1)).isoformat(),
        "max_uses": 1,
    }

    created = client.post("/api/promotions", json=payload, headers=auth_headers(world.organizer))
    assert created.status_code == 201
    duplicate = client.post("/api/promotions", json=payload, headers=auth_headers(world.organizer))
    assert duplicate.status_code == 409
    by_customer = client.post("/api/promotions", json=payload, headers=auth_headers(world.customer))
    assert by_customer.status_code == 403

    listed = client.get(
        "/api/promotions", params={"event_id": world.festival.id}, headers=auth_headers(world.customer)
    )
    assert {item["code"] for item in listed.json()} == {"EARLY10", "FLASH50K"}

    first = _checkout(client, world, auth_headers, quantity=1, promo_code="FLASH50K")
    assert first.status_code == 201
    assert first.json()["promo_discount_idr"] == 50000
    exhausted = _checkout(client, world, auth_headers, quantity=1, promo_code="FLASH50K")
    assert exhausted.status_code == 422

    promotion = db_session.query(Promotion).filter(Promotion.code == "FLASH50K").one()
    assert promotion.uses_count == 1


def test_health_endpoints(client: TestClient) -> None:
    assert client.get("/api/healthz").json()["status"] == "ok"
    assert client.get("/api/readyz").json()["status"] == "ready"


def test_proof_for_closed_reservation_is_not_stored(
    client: TestClient, world: TicketingWorld, auth_headers: Headers, s3_client: InMemoryS3Client
) -> None:
    reservation_id = _checkout(client, world, auth_headers).json()["id"]
    canceled = client.post(
        f"/api/transactions/{reservation_id}/cancel", headers=auth_headers(world.customer)
    )
    assert canceled.status_code == 200

    response = _upload_proof(client, reservation_id, auth_headers(world.customer))

    assert response.status_code == 409
    assert s3_client.buckets.get("eventify-payment-proofs", {}) == {}


def test_promotion_management_endpoints(
    client: TestClient, world: TicketingWorld, auth_headers: Headers
) -> None:
    organizer = auth_headers(world.organizer)
    promotion_id = world.early10.id

    mine = client.get("/api/promotions/mine", headers=organizer)
    assert [item["code"] for item in mine.json()] == ["EARLY10"]
    assert client.get("/api/promotions/mine", headers=auth_headers(world.other_organizer)).json() == []

    updated = client.put(
        f"/api/promotions/{promotion_id}", json={"value": 20}, headers=organizer
    )
    assert updated.status_code == 200
    assert updated.json()["value"] == 20

    foreign = client.delete(
        f"/api/promotions/{promotion_id}", headers=auth_headers(world.other_organizer)
    )
    assert foreign.status_code == 403

    deleted = client.delete(f"/api/promotions/{promotion_id}", headers=organizer)
    assert deleted.status_code == 204
    assert client.get("/api/promotions/mine", headers=organizer).json() == []
    missing = client.put(f"/api/promotions/{promotion_id}", json={"value": 5}, headers=organizer)
    assert missing.status_code == 404
