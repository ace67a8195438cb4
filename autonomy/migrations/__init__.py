"""
Ordered SQL migration runner.

Each ``*.sql`` file in the migrations directory is one unit. Units apply in
lexicographic filename order; a unit's statements and its ``_migrations``
ledger row commit in the same transaction, so a failed unit leaves neither
behind. Names already present in the ledger are never applied again.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from autonomy.core.exceptions import MigrationError
from autonomy.models import MigrationRow

logger = logging.getLogger(__name__)

LEDGER_TABLE = MigrationRow.__tablename__

_CREATE_LEDGER = f"""
CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
    id         INTEGER PRIMARY KEY,
    name       TEXT NOT NULL UNIQUE,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""


def list_migrations(migrations_dir: str | Path | None) -> list[Path]:
    """Return available migration files sorted by name; empty when the directory is absent."""
    if migrations_dir is None:
        return []
    directory = Path(migrations_dir)
    if not directory.is_dir():
        return []
    return sorted((p for p in directory.iterdir() if p.suffix == ".sql" and p.is_file()), key=lambda p: p.name)


def split_statements(sql: str) -> list[str]:
    """Split a SQL script into complete statements (SQLite grammar)."""
    statements: list[str] = []
    buffer = ""
    for line in sql.splitlines(keepends=True):
        if not buffer and line.strip().startswith("--"):
            continue
        buffer += line
        if sqlite3.complete_statement(buffer):
            statement = buffer.strip()
            if statement.rstrip(";").strip():
                statements.append(statement)
            buffer = ""
    if buffer.strip():
        # Trailing statement without a semicolon.
        statements.append(buffer.strip())
    return statements


def applied_migrations(engine: Engine) -> set[str]:
    with engine.connect() as connection:
        return set(connection.scalars(select(MigrationRow.name)).all())


def run_migrations(engine: Engine, migrations_dir: str | Path | None) -> list[str]:
    """
    Apply pending migrations in order and return the names applied.

    The engine must open transactions with an explicit BEGIN (see
    ``autonomy.database.create_sqlite_engine``) so DDL is rolled back
    together with the ledger insert on failure.

    Raises MigrationError on the first failing unit; later units are not attempted.
    """
    with engine.begin() as connection:
        connection.exec_driver_sql(_CREATE_LEDGER)

    files = list_migrations(migrations_dir)
    if not files:
        logger.debug("No migration files found in %s", migrations_dir)
        return []

    already_applied = applied_migrations(engine)
    applied: list[str] = []

    for path in files:
        if path.name in already_applied:
            continue

        try:
            sql = path.read_text(encoding="utf-8")
            with engine.begin() as connection:
                for statement in split_statements(sql):
                    connection.exec_driver_sql(statement)
                connection.execute(insert(MigrationRow).values(name=path.name))
        except (SQLAlchemyError, OSError, UnicodeDecodeError) as exc:
            logger.error("Migration %s failed, rolled back: %s", path.name, exc)
            raise MigrationError(path.name, str(exc)) from exc

        applied.append(path.name)
        logger.info("Applied migration %s", path.name)

    return applied
