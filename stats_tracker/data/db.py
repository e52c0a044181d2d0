"""Database engine and session management utilities.

Engines and session factories are created explicitly and handed to the
components that need them; nothing here caches a process-wide engine.

Example:
    >>> from stats_tracker.data.db import (
    ...     create_db_engine, create_session_factory, init_db, session_scope,
    ... )
    >>> engine = create_db_engine("sqlite:///data/stats.db")
    >>> init_db(engine)
    >>> factory = create_session_factory(engine)
    >>> with session_scope(factory) as session:
    ...     session.add(some_model)
"""
from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stats_tracker.data.schema import Base

if TYPE_CHECKING:
    from stats_tracker.config import Settings

logger = logging.getLogger(__name__)


def _set_sqlite_pragmas(
    dbapi_connection: Any,
    connection_record: Any,
) -> None:
    """Set SQLite-specific pragmas for integrity and concurrent reads.

    Args:
        dbapi_connection: Raw DBAPI connection object.
        connection_record: Connection pool record (unused).
    """
    # Let SQLAlchemy own BEGIN so SAVEPOINTs nest inside the outer transaction
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()
    logger.debug("SQLite pragmas applied: foreign_keys=ON, journal_mode=WAL")


def _emit_sqlite_begin(conn: Any) -> None:
    """Start the DBAPI transaction explicitly (pysqlite defers it otherwise)."""
    conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for the given database URL.

    For file-backed SQLite the parent directory is created. In-memory
    SQLite uses a single shared connection so every session sees the
    same database.

    Args:
        url: SQLAlchemy database URL.
        echo: Log emitted SQL.

    Returns:
        SQLAlchemy Engine instance.
    """
    parsed = make_url(url)
    kwargs: dict[str, Any] = {"echo": echo}

    if parsed.get_backend_name() == "sqlite":
        database = parsed.database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensuring database directory exists: {Path(database).parent}")
            kwargs["pool_pre_ping"] = True
        else:
            kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(url, **kwargs)

    if parsed.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _set_sqlite_pragmas)
        event.listen(engine, "begin", _emit_sqlite_begin)

    logger.debug(f"Created database engine: {url}")
    return engine


def engine_from_settings(settings: Settings) -> Engine:
    """Create an engine for the database file named in settings."""
    return create_db_engine(settings.db_url)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to ``engine``.

    ``expire_on_commit`` is disabled so records returned from a committed
    unit of work stay readable by callers.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """Context manager for a unit of work with auto-commit/rollback.

    Commits on successful exit and rolls back on exception, so a unit
    interrupted before commit leaves no partial writes behind.

    Yields:
        SQLAlchemy Session instance.

    Raises:
        Exception: Re-raises any exception after rollback.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
        logger.debug("Session committed successfully")
    except Exception:
        logger.debug("Session rolling back due to exception")
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create all tables. Safe to call repeatedly.

    Args:
        engine: Engine whose database receives the schema.
    """
    # Import models to ensure they're registered with Base
    from stats_tracker.data import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database initialized - all tables created")


def verify_foreign_keys_enabled(engine: Engine) -> bool:
    """Verify that foreign key constraints are enabled.

    Returns:
        True if foreign keys are enabled, False otherwise.
    """
    with engine.connect() as conn:
        result = conn.execute(text("PRAGMA foreign_keys"))
        row = result.fetchone()
        return row is not None and row[0] == 1
