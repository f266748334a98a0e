"""Database engine and session factory."""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs() -> dict:
    if settings.is_sqlite:
        # SQLite connections are shared across the threadpool FastAPI runs sync handlers in.
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs())

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def get_db():
    """Dependency to get database session.

    The persistence adapter commits per call; this dependency only provides
    the session and handles cleanup.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
