"""Database dependencies for FastAPI endpoints."""

from collections.abc import Generator

from sqlalchemy.orm import Session

from app.db.session import SessionLocal


def get_db_session() -> Generator[Session, None, None]:
    """Yield a request-scoped session.

    Services commit their own units of work; anything left uncommitted when the
    request ends is rolled back on close.
    """

    with SessionLocal() as session:
        yield session
