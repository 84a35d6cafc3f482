"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Callable, Iterator

from sqlalchemy.orm import Session

from eventify.db.session import SessionLocal
from eventify.services.proofs import PaymentProofStorage


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_session_factory() -> Callable[[], Session]:
    """Session factory for work that opens its own sessions, such as sweeps."""

    return SessionLocal


def get_proof_storage() -> PaymentProofStorage:
    return PaymentProofStorage()


__all__ = ["get_db_session", "get_proof_storage", "get_session_factory"]
