"""Reservation (transaction) lifecycle API routes."""
from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from eventify.api.deps import get_db_session, get_proof_storage, get_session_factory
from eventify.api.routes.auth import AuthenticatedUser, get_current_user, require_role
from eventify.models import Reservation, ReservationStatus
from eventify.schemas import CheckoutRequest, DecisionRequest, ReservationRead, SweepResponse
from eventify.services.errors import ForbiddenError, InvalidStateTransitionError
from eventify.services.expiry import ExpirySweeper
from eventify.services.proofs import PaymentProofStorage
from eventify.services.reservations import ReservationService

router = APIRouter(prefix="/transactions")

_ACCEPTS_PROOF = frozenset(
    {ReservationStatus.WAITING_PAYMENT, ReservationStatus.WAITING_CONFIRMATION}
)


@router.get("", response_model=list[ReservationRead])
def list_my_reservations(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> list[ReservationRead]:
    reservations = ReservationService(session).list_for_user(user.user_id)
    return [ReservationRead.model_validate(item) for item in reservations]


@router.post("", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
def create_reservation(
    payload: CheckoutRequest,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("CUSTOMER")),
) -> ReservationRead:
    """Check out tickets, optionally applying a promo code and points."""

    reservation = ReservationService(session).create_reservation(
        user_id=user.user_id,
        event_id=payload.event_id,
        ticket_type_id=payload.ticket_type_id,
        quantity=payload.quantity,
        use_points=payload.use_points,
        promo_code=payload.promo_code,
    )
    return ReservationRead.model_validate(reservation)


@router.get("/manage", response_model=list[ReservationRead])
def list_managed_reservations(
    status_filter: ReservationStatus | None = Query(default=None, alias="status"),
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("ORGANIZER", "ADMIN")),
) -> list[ReservationRead]:
    """Reservations for the caller's events, optionally filtered by status."""

    reservations = ReservationService(session).list_for_organizer(user.actor, status=status_filter)
    return [ReservationRead.model_validate(item) for item in reservations]


@router.post("/sweep", response_model=SweepResponse)
def sweep_overdue_reservations(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    user: AuthenticatedUser = Depends(require_role("ADMIN")),
) -> SweepResponse:
    report = ExpirySweeper(session_factory).run()
    return SweepResponse(
        expired=report.expired,
        canceled=report.canceled,
        skipped=report.skipped,
        failed=report.failed,
    )


@router.get("/{reservation_id}", response_model=ReservationRead)
def get_reservation(
    reservation_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> ReservationRead:
    reservation = ReservationService(session).get_reservation(reservation_id, actor=user.actor)
    return ReservationRead.model_validate(reservation)


@router.post("/{reservation_id}/proof", response_model=ReservationRead)
async def upload_payment_proof(
    reservation_id: str,
    request: Request,
    session: Session = Depends(get_db_session),
    storage: PaymentProofStorage = Depends(get_proof_storage),
    user: AuthenticatedUser = Depends(require_role("CUSTOMER")),
) -> ReservationRead:
    """Store the uploaded proof file and move the reservation to confirmation."""

    body = await request.body()
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    content_type = request.headers.get("content-type")
    filename = request.headers.get("x-upload-filename")

    def _submit() -> Reservation:
        service = ReservationService(session)
        reservation = service.get_reservation(reservation_id, actor=user.actor)
        if reservation.user_id != user.user_id:
            raise ForbiddenError("Only the reservation owner can submit a payment proof")
        # Nothing is uploaded for a reservation that can no longer take a proof.
        if reservation.status not in _ACCEPTS_PROOF:
            raise InvalidStateTransitionError(
                f"Reservation '{reservation_id}' no longer accepts payment proofs"
            )
        stored = storage.store(
            reservation_id=reservation_id,
            file_bytes=body,
            content_type=content_type,
            filename=filename,
        )
        return service.submit_payment_proof(
            reservation_id, actor=user.actor, proof_ref=stored.location
        )

    reservation = await run_in_threadpool(_submit)
    return ReservationRead.model_validate(reservation)


@router.post("/{reservation_id}/decision", response_model=ReservationRead)
def decide_reservation(
    reservation_id: str,
    payload: DecisionRequest,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("ORGANIZER", "ADMIN")),
) -> ReservationRead:
    """Approve (issue tickets) or reject (return points) a paid reservation."""

    reservation = ReservationService(session).decide(
        reservation_id, actor=user.actor, decision=payload.decision
    )
    return ReservationRead.model_validate(reservation)


@router.post("/{reservation_id}/cancel", response_model=ReservationRead)
def cancel_reservation(
    reservation_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> ReservationRead:
    reservation = ReservationService(session).cancel(reservation_id, actor=user.actor)
    return ReservationRead.model_validate(reservation)


__all__ = ["router"]
