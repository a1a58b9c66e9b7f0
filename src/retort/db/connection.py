"""
Database connection management for Retort.

Provides engine creation, session management and transaction support for the
local SQLite store. The engine is created on first use from the configured
database path and can be re-pointed with :func:`configure_engine`.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from retort.config import settings
from retort.models.db import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlite_engine(database_url: str) -> Engine:
    """
    Create a SQLite engine with foreign keys enforced.

    In-memory databases share a single connection so that the schema survives
    across sessions.
    """
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        db_file = Path(database_url.removeprefix("sqlite:///"))
        db_file.parent.mkdir(parents=True, exist_ok=True)

    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url:
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, echo=False, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def configure_engine(database_url: Optional[str] = None) -> Engine:
    """
    (Re)create the engine and session factory, and ensure the schema exists.

    Args:
        database_url: SQLAlchemy URL; defaults to ``settings.database_url``

    Returns:
        Engine: The newly configured engine
    """
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()

    _engine = create_sqlite_engine(database_url or settings.database_url)
    _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    Base.metadata.create_all(bind=_engine)
    return _engine


def get_engine() -> Engine:
    """Return the engine, creating it from settings on first use."""
    if _engine is None:
        configure_engine()
    return _engine


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        Session: A new SQLAlchemy session

    Example:
        >>> session = get_session()
        >>> try:
        >>>     # Use session
        >>>     session.commit()
        >>> except Exception:
        >>>     session.rollback()
        >>> finally:
        >>>     session.close()
    """
    get_engine()
    return _session_factory()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Everything done inside the block is committed together on success and
    rolled back together on any exception.

    Yields:
        Session: A SQLAlchemy session

    Example:
        >>> with db_session() as db:
        >>>     graph = GraphStore(db)
        >>>     graph.append(None, MessageRole.USER, "hello")
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create tables if they do not yet exist."""
    Base.metadata.create_all(bind=get_engine())


def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
