"""Database configuration and base setup for Enclave Control Tower."""

from typing import Generator, Optional

import structlog
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def get_database_url() -> str:
    """Database URL from settings (DATABASE_URL in the environment or .env)."""
    return get_settings().database_url


def engine_options(database_url: str) -> dict:
    """Engine keyword arguments for the given URL."""
    if database_url.startswith("sqlite"):
        # One shared connection; request handlers run in worker threads.
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Create and cache the database engine."""
    global _engine
    if _engine is None:
        database_url = get_database_url()
        _engine = create_engine(database_url, **engine_options(database_url))
    return _engine


def get_session_local() -> sessionmaker:
    """Get a sessionmaker bound to the current engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    session_local = get_session_local()
    db = session_local()
    try:
        yield db
    finally:
        db.close()


async def init_database() -> None:
    """Initialize the database with all tables."""
    # Import all models to ensure they're registered with Base
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("database_initialized")
