"""Transaction scoping helpers shared by the domain services."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Commit ``session`` if the block succeeds, roll it back otherwise."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


__all__ = ["unit_of_work"]
