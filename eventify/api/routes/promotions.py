"""Promotion code endpoints for organizers."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from eventify.api.deps import get_db_session
from eventify.api.routes.auth import AuthenticatedUser, get_current_user, require_role
from eventify.schemas import PromotionCreate, PromotionRead, PromotionUpdate
from eventify.services.promotions import (
    PromotionChanges,
    PromotionDraft,
    create_promotion,
    delete_promotion,
    list_organizer_promotions,
    list_promotions,
    update_promotion,
)

router = APIRouter(prefix="/promotions")


@router.post("", response_model=PromotionRead, status_code=status.HTTP_201_CREATED)
def create_event_promotion(
    payload: PromotionCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("ORGANIZER", "ADMIN")),
) -> PromotionRead:
    """Create a promo code for one of the caller's events."""

    draft = PromotionDraft(
        event_id=payload.event_id,
        code=payload.code,
        kind=payload.kind,
        value=payload.value,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        min_spend_idr=payload.min_spend_idr,
        max_uses=payload.max_uses,
    )
    promotion = create_promotion(session, actor=user.actor, draft=draft)
    return PromotionRead.model_validate(promotion)


@router.get("", response_model=list[PromotionRead])
def list_event_promotions(
    event_id: str | None = None,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> list[PromotionRead]:
    return [PromotionRead.model_validate(item) for item in list_promotions(session, event_id=event_id)]


@router.get("/mine", response_model=list[PromotionRead])
def list_my_promotions(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("ORGANIZER")),
) -> list[PromotionRead]:
    promotions = list_organizer_promotions(session, actor=user.actor)
    return [PromotionRead.model_validate(item) for item in promotions]


@router.put("/{promotion_id}", response_model=PromotionRead)
def update_event_promotion(
    promotion_id: str,
    payload: PromotionUpdate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("ORGANIZER", "ADMIN")),
) -> PromotionRead:
    changes = PromotionChanges(**payload.model_dump(exclude_none=True))
    promotion = update_promotion(session, promotion_id, actor=user.actor, changes=changes)
    return PromotionRead.model_validate(promotion)


@router.delete("/{promotion_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event_promotion(
    promotion_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("ORGANIZER", "ADMIN")),
) -> Response:
    delete_promotion(session, promotion_id, actor=user.actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
