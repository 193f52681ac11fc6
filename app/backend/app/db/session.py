"""Engine, session factory, and unit-of-work helper."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings

engine = create_engine(get_settings().database_url, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Commit every write made inside the block once, or roll all of them back."""

    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
