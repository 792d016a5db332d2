"""Database configuration and session management."""
from __future__ import annotations

import sqlite3
from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from giftsplit.config import get_settings
from giftsplit.models.base import Base

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None

# SQLSTATE 23505 on PostgreSQL; SQLite only reports it in the message.
_UNIQUE_VIOLATION_PGCODE = "23505"
_SQLITE_BEGIN_MODES = frozenset({"DEFERRED", "IMMEDIATE", "EXCLUSIVE"})


def _engine_kwargs() -> dict[str, object]:
    settings = get_settings()
    if settings.database_url.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
            }
        }
    return {}


def init_engine() -> Engine:
    """Initialise the synchronous SQLAlchemy engine lazily."""

    global engine, SessionLocal
    if engine is None:
        settings = get_settings()
        engine = create_engine(settings.database_url, future=True, echo=False, **_engine_kwargs())
        SessionLocal = sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
    return engine


def get_engine() -> Engine:
    """Return the active SQLAlchemy engine, creating it if necessary."""

    if engine is None:
        return init_engine()
    return engine


def get_sessionmaker() -> sessionmaker[Session]:
    """Return the configured session factory, initialising the engine on demand."""

    if SessionLocal is None:
        init_engine()
    assert SessionLocal is not None  # for type-checkers
    return SessionLocal


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:
    """Enforce foreign keys and let SQLAlchemy drive SQLite transactions.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT handling; disabling its implicit transactions and emitting
    BEGIN from the ``begin`` hook below restores it.
    """

    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(Engine, "begin")
def _sqlite_begin(conn) -> None:
    """Open SQLite transactions as ``BEGIN IMMEDIATE``.

    The write lock is taken before the first read, so a second writer waits
    out the busy timeout instead of failing its SHARED -> RESERVED upgrade.
    Read-only callers pass ``execution_options(sqlite_begin="DEFERRED")``.
    """

    if conn.dialect.name != "sqlite":
        return
    mode = conn.get_execution_options().get("sqlite_begin", "IMMEDIATE")
    if mode not in _SQLITE_BEGIN_MODES:
        raise ValueError(f"Unsupported SQLite BEGIN mode: {mode}")
    conn.exec_driver_sql(f"BEGIN {mode}")


def is_unique_violation(exc: IntegrityError) -> bool:
    """Return True when ``exc`` reports a unique constraint violation."""

    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == _UNIQUE_VIOLATION_PGCODE:
        return True
    if getattr(orig, "sqlstate", None) == _UNIQUE_VIOLATION_PGCODE:
        return True
    message = str(orig or exc).lower()
    return "unique" in message or "duplicate" in message


def create_all() -> None:
    """Create all database tables using the shared declarative metadata."""

    engine = get_engine()
    Base.metadata.create_all(bind=engine)


def close_engine() -> None:
    """Dispose of the SQLAlchemy engine and reset the session factory."""

    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
        engine = None
        SessionLocal = None


def get_db() -> Generator[Session, None, None]:
    """Provide a database session for FastAPI dependencies."""

    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "create_all",
    "get_db",
    "get_engine",
    "get_sessionmaker",
    "init_engine",
    "close_engine",
    "is_unique_violation",
]
