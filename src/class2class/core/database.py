"""Database connection and session management.

This module handles the SQLite connection backing the key-value storage
medium using SQLAlchemy.
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from class2class.config import DATA_DIR, STORAGE_DATABASE_URL
from class2class.models.base import Base
# Import models to ensure they are registered with Base.metadata
from class2class import models  # noqa: F401

_session_factory: Optional[sessionmaker] = None


def create_storage_engine(url: str = STORAGE_DATABASE_URL) -> Engine:
    """Create an engine for the storage medium and make sure tables exist.

    Args:
        url: SQLAlchemy database URL.

    Returns:
        Configured Engine.
    """
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection keeps the in-memory database alive
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            DATA_DIR.mkdir(parents=True, exist_ok=True)
            engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(url)
    init_db(engine)
    return engine


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def create_session_factory(url: str = STORAGE_DATABASE_URL) -> sessionmaker:
    """Build a session factory bound to a freshly created engine."""
    engine = create_storage_engine(url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory, creating it on first use."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory()
    return _session_factory

