"""
Database configuration and session management.

The datastore core never opens, commits or rolls back transactions: callers
create a session here, pass it to the core, and own its lifecycle.
"""

from collections.abc import Generator
from contextlib import contextmanager
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session

from shared.config.settings import settings, DATABASE_URL


def _calculate_pool_size() -> int:
    """
    Calculate pool size based on CPU cores.
    Formula: (2 * CPU cores) + 1, capped at 20.
    """
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def build_engine(url: str = DATABASE_URL, **overrides) -> Engine:
    """
    Create an engine with pooling tuned for the target backend.

    SQLite uses its own single-file/in-memory pooling, so the
    server pool arguments are only applied to client/server databases.
    """
    options: dict = {"echo": settings.database_echo}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(
            pool_pre_ping=True,  # Verify connections before using
            pool_size=_calculate_pool_size(),
            max_overflow=15,
            pool_timeout=30,  # Wait max 30s for connection from pool
            pool_recycle=1800,  # Recycle connections after 30 minutes
        )
    options.update(overrides)
    return create_engine(url, **options)


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    """Session factory; sessions never autoflush behind the core's back."""
    return sessionmaker(bind=bind, autoflush=False, autocommit=False)


@contextmanager
def get_db_context(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Context manager for a database session.

    Usage:
        with get_db_context(SessionLocal) as db:
            repo.get_by_id("d-1", db)
    """
    db = factory()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
