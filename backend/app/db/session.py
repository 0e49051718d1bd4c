"""
Database session management.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.core.config import settings
from app.db.base import Base

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    pool_recycle=3600
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def run_in_transaction(db: Session) -> Iterator[Session]:
    """
    Run a multi-step write as one unit.
    Commits when the block exits cleanly, rolls back on any exception
    (including cancellation of the surrounding request) and re-raises.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def init_db():
    """Initialize database tables."""
    import app.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
