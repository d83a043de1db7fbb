"""Schema migrations for the argfolio store.

Migrations ship as package data under ``argfolio/migrations`` and are named
``NNN_description.sql``. The runner owns the ``_schema_version`` ledger: each
pending script runs inside one transaction together with its ledger row, so
a failing script leaves neither its tables nor its version behind.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass
from importlib import resources
from typing import Sequence

from argfolio.storage.database import Database

logger = logging.getLogger(__name__)

MIGRATION_PATTERN = re.compile(r"^(\d{3})_.*\.sql$")

_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS _schema_version (
    version     INTEGER PRIMARY KEY,
    name        TEXT NOT NULL,
    applied_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class MigrationError(RuntimeError):
    """A migration script failed and was rolled back."""


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    sql: str


def discover_migrations(package: str = "argfolio") -> list[Migration]:
    """Bundled migrations in ascending version order."""
    root = resources.files(package) / "migrations"
    if not root.is_dir():
        logger.warning("No migrations bundled with %s", package)
        return []

    found = []
    for entry in root.iterdir():
        match = MIGRATION_PATTERN.match(entry.name)
        if match:
            found.append(Migration(int(match.group(1)), entry.name, entry.read_text()))
    return sorted(found, key=lambda m: m.version)


def pending_migrations(
    db: Database, migrations: Sequence[Migration] | None = None,
) -> list[Migration]:
    current = db.schema_version()
    available = discover_migrations() if migrations is None else migrations
    return [m for m in available if m.version > current]


def _apply_one(db: Database, migration: Migration) -> None:
    name = migration.name.replace("'", "''")
    script = (
        "BEGIN;\n"
        f"{migration.sql}\n"
        "INSERT INTO _schema_version (version, name) "
        f"VALUES ({migration.version}, '{name}');\n"
        "COMMIT;"
    )
    try:
        db.executescript(script)
    except sqlite3.Error as e:
        if db.conn.in_transaction:
            db.conn.rollback()
        logger.error("Migration %s failed: %s", migration.name, e)
        raise MigrationError(f"Migration {migration.name} failed: {e}") from e


def ensure_schema(db: Database, migrations: Sequence[Migration] | None = None) -> int:
    """Bring ``db`` up to the newest migration and return its schema version."""
    db.executescript(_LEDGER_DDL)
    pending = pending_migrations(db, migrations)
    if not pending:
        logger.debug("Schema up to date (version %d)", db.schema_version())
        return db.schema_version()

    for migration in pending:
        logger.info("Applying migration %s", migration.name)
        _apply_one(db, migration)

    version = db.schema_version()
    logger.info("Applied %d migration(s). Schema version: %d", len(pending), version)
    return version
