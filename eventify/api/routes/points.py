"""Points balance endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventify.api.deps import get_db_session
from eventify.api.routes.auth import AuthenticatedUser, get_current_user
from eventify.schemas import LedgerEntryRead, PointsBalanceRead
from eventify.services.points import PointsLedger

router = APIRouter(prefix="/points")


@router.get("/me", response_model=PointsBalanceRead)
def read_my_points(
    limit: int = 50,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> PointsBalanceRead:
    ledger = PointsLedger(session)
    balance = ledger.balance(user.user_id)
    history = ledger.history(user.user_id, limit=max(1, min(limit, 500)))
    return PointsBalanceRead(
        user_id=user.user_id,
        balance_idr=balance,
        history=[LedgerEntryRead.model_validate(entry) for entry in history],
    )


__all__ = ["router"]
