"""
Database connection and session management.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from autonomy.config import get_settings
from autonomy.core.exceptions import DatabaseNotInitializedError
from autonomy.migrations import run_migrations

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

_engine: Engine | None = None
_session_factory: sessionmaker | None = None
_init_lock = threading.Lock()


def create_sqlite_engine(db_path: str | Path, busy_timeout_ms: int = 5000) -> Engine:
    """
    Create a SQLite engine with WAL, foreign keys and transactional DDL.

    pysqlite only opens transactions implicitly before DML, so the driver's
    own transaction handling is disabled and every SQLAlchemy transaction
    starts with an explicit BEGIN.
    """
    db_path = str(db_path)
    if db_path == MEMORY_DB:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
        )

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA foreign_keys = ON")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_transaction(connection):
        connection.exec_driver_sql("BEGIN")

    return engine


def init_db(
    db_path: str | Path | None = None,
    migrations_dir: str | Path | None = None,
) -> Engine:
    """
    Open the store and migrate it forward. Safe to call repeatedly.

    The first successful call wins; later calls return the same engine without
    re-running migrations. A failed migration disposes the engine and leaves
    the store uninitialized, re-raising MigrationError.
    """
    global _engine, _session_factory

    with _init_lock:
        if _engine is not None:
            return _engine

        settings = get_settings()
        path = db_path if db_path is not None else settings.db_path
        directory = migrations_dir if migrations_dir is not None else settings.migrations_dir

        engine = create_sqlite_engine(path, busy_timeout_ms=settings.db_busy_timeout_ms)
        try:
            applied = run_migrations(engine, directory)
        except Exception:
            engine.dispose()
            raise

        if applied:
            logger.info("Database migrated (%s new migrations) at %s", len(applied), path)
        else:
            logger.info("Database up to date at %s", path)

        _engine = engine
        _session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        return _engine


def get_engine() -> Engine:
    """Return the initialized engine or fail loudly."""
    if _engine is None:
        raise DatabaseNotInitializedError("Database not initialized. Call init_db() first.")
    return _engine


def get_session() -> Session:
    """Open a new session on the initialized store. The caller closes it."""
    if _session_factory is None:
        raise DatabaseNotInitializedError("Database not initialized. Call init_db() first.")
    return _session_factory()


def get_db() -> Generator[Session, None, None]:
    """
    Yield a session and close it afterwards.
    """
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def close_db() -> None:
    """Dispose the engine so the next init_db() starts fresh."""
    global _engine, _session_factory

    with _init_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None


def database_health() -> dict[str, Any]:
    """
    Return structured database health details.
    """
    try:
        engine = get_engine()
        with engine.connect() as connection:
            journal_mode = connection.exec_driver_sql("PRAGMA journal_mode").scalar()
            foreign_keys = connection.exec_driver_sql("PRAGMA foreign_keys").scalar()
            migrations = connection.execute(text("SELECT COUNT(*) FROM _migrations")).scalar()
        return {
            "ok": True,
            "journal_mode": str(journal_mode),
            "foreign_keys": bool(foreign_keys),
            "migrations_applied": int(migrations or 0),
        }
    except (SQLAlchemyError, DatabaseNotInitializedError) as exc:
        return {
            "ok": False,
            "error": str(exc),
        }
