"""Translation of domain errors into HTTP responses."""
from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from eventify.services.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    InvalidStateTransitionError,
    NotFoundError,
    ReservationError,
    ValidationFailedError,
)

_STATUS_BY_ERROR: tuple[tuple[type[ReservationError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationFailedError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InsufficientBalanceError, status.HTTP_400_BAD_REQUEST),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
)


def status_for(exc: ReservationError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"detail": str(exc)})


def register_error_handlers(application: FastAPI) -> None:
    application.add_exception_handler(ReservationError, reservation_error_handler)


__all__ = ["register_error_handlers", "reservation_error_handler", "status_for"]
