"""SQLite store for snapshot history and user preferences.

One file holds everything argfolio persists between runs: the daily
snapshots the drivers and risk commands read back, the per-account FX
overrides, and the per-provider commission settings. ``":memory:"`` opens
a private database that lives as long as the connection.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

DOMAIN_TABLES = ("snapshots", "fx_overrides", "commissions")

_FILE_PRAGMAS = ("journal_mode = WAL", "foreign_keys = ON", "busy_timeout = 5000")
_MEMORY_PRAGMAS = ("foreign_keys = ON",)


class Database:
    """Lazily opened SQLite connection with ``Row`` results."""

    def __init__(self, path: str | Path):
        self.in_memory = str(path) == MEMORY
        self.path = Path(MEMORY) if self.in_memory else Path(path).expanduser().resolve()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        if self.in_memory:
            conn = sqlite3.connect(MEMORY)
            pragmas = _MEMORY_PRAGMAS
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path))
            pragmas = _FILE_PRAGMAS
        for pragma in pragmas:
            conn.execute(f"PRAGMA {pragma}")
        conn.row_factory = sqlite3.Row
        self._conn = conn
        logger.debug("Opened argfolio store at %s", self.path)
        return conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self.connect()

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.debug("Closed argfolio store at %s", self.path)

    # -- statements ----------------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        return self.conn.execute(sql, params)

    def write(self, sql: str, params: tuple = ()) -> int:
        """Run one data-changing statement, commit, and return the affected row count."""
        with self.transaction() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    def executescript(self, sql: str) -> None:
        self.conn.executescript(sql)

    def fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        return self.conn.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        return self.conn.execute(sql, params).fetchall()

    def scalar(self, sql: str, params: tuple = (), default: Any = None) -> Any:
        """First column of the first row, or ``default`` when there is none."""
        row = self.fetchone(sql, params)
        if row is None or row[0] is None:
            return default
        return row[0]

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """Commit on success, roll back and re-raise on error."""
        conn = self.connect()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    # -- introspection -------------------------------------------------------

    def table_exists(self, name: str) -> bool:
        return self.scalar(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,),
        ) is not None

    def schema_version(self) -> int:
        """Highest applied migration, 0 for a fresh database."""
        if not self.table_exists("_schema_version"):
            return 0
        return int(self.scalar("SELECT MAX(version) FROM _schema_version", default=0))

    def row_counts(self) -> dict[str, int]:
        """Rows per argfolio table; tables not created yet count as 0."""
        return {
            table: int(self.scalar(f"SELECT COUNT(*) FROM {table}", default=0))
            if self.table_exists(table) else 0
            for table in DOMAIN_TABLES
        }

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Database({self.path})"
