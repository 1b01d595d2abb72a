"""Database session management."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from safetrail.core.config import settings
from safetrail.core.errors import DuplicateKeyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.store_timeout_seconds}
    if url.startswith("postgresql"):
        timeout_ms = int(settings.store_timeout_seconds * 1000)
        return {
            "connect_timeout": max(1, int(settings.store_timeout_seconds)),
            "options": f"-c statement_timeout={timeout_ms}",
        }
    return {}


def build_engine(url: str):
    """Engine with store calls bounded by ``store_timeout_seconds``."""
    kwargs = {}
    # in-memory SQLite uses a singleton pool without a checkout timeout
    if ":memory:" not in url and url != "sqlite://":
        kwargs["pool_timeout"] = settings.store_timeout_seconds
    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args=_connect_args(url),
        echo=settings.debug,
        **kwargs,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for FastAPI to get DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def insert_unique(
    db: Session,
    make: Callable[[], T],
    taken: Callable[[T], bool],
    key: str,
    attempts: int,
) -> T:
    """Insert ``make()`` inside a savepoint, rebuilding it when another writer
    committed the same generated ``key`` between the existence check and the
    insert. Other integrity errors propagate.
    """
    for _ in range(attempts):
        obj = make()
        try:
            with db.begin_nested():
                db.add(obj)
        except IntegrityError:
            if not taken(obj):
                raise
            logger.warning("Generated %s collided with a concurrent insert, retrying", key)
            continue
        return obj
    raise DuplicateKeyError(key, attempts)
