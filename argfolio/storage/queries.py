"""Named query functions for database operations."""

from __future__ import annotations

import json
from typing import Any

from argfolio.storage.database import Database

# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def upsert_snapshot(db: Database, record: dict[str, Any]) -> None:
    """Insert or replace the snapshot for ``record['date_key']``."""
    db.write(
        """INSERT INTO snapshots (
            date_key, total_ars, total_usd, source, schema_version, data_json, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, COALESCE(NULLIF(?, ''), datetime('now')))
        ON CONFLICT(date_key) DO UPDATE SET
            total_ars=excluded.total_ars, total_usd=excluded.total_usd,
            source=excluded.source, schema_version=excluded.schema_version,
            data_json=excluded.data_json, created_at=excluded.created_at
        """,
        (
            record["date_key"],
            record["total_ars"],
            record["total_usd"],
            record.get("source", "v2"),
            record.get("schema_version", 2),
            json.dumps(record),
            record.get("created_at", ""),
        ),
    )


def get_snapshot(db: Database, date_key: str) -> dict[str, Any] | None:
    row = db.fetchone("SELECT data_json FROM snapshots WHERE date_key = ?", (date_key,))
    return json.loads(row["data_json"]) if row else None


def list_snapshots(
    db: Database, *, since: str | None = None, until: str | None = None,
) -> list[dict[str, Any]]:
    """Snapshot records ascending by date, optionally bounded (inclusive)."""
    sql = "SELECT data_json FROM snapshots WHERE 1=1"
    params: list[str] = []
    if since:
        sql += " AND date_key >= ?"
        params.append(since)
    if until:
        sql += " AND date_key <= ?"
        params.append(until)
    sql += " ORDER BY date_key ASC"
    return [json.loads(r["data_json"]) for r in db.fetchall(sql, tuple(params))]


def list_snapshot_summaries(db: Database) -> list[dict[str, Any]]:
    rows = db.fetchall(
        "SELECT date_key, total_ars, total_usd, source, created_at "
        "FROM snapshots ORDER BY date_key ASC"
    )
    return [dict(r) for r in rows]


def delete_snapshot(db: Database, date_key: str) -> bool:
    return db.write("DELETE FROM snapshots WHERE date_key = ?", (date_key,)) > 0


def delete_all_snapshots(db: Database) -> int:
    """Bulk delete. Returns the number of rows removed."""
    return db.write("DELETE FROM snapshots")


# ---------------------------------------------------------------------------
# FX overrides
# ---------------------------------------------------------------------------

def upsert_fx_override(db: Database, account_id: str, kind: str, family: str, side: str) -> None:
    db.write(
        """INSERT INTO fx_overrides (account_id, kind, family, side, updated_at)
        VALUES (?, ?, ?, ?, datetime('now'))
        ON CONFLICT(account_id, kind) DO UPDATE SET
            family=excluded.family, side=excluded.side, updated_at=datetime('now')
        """,
        (account_id, kind, family, side),
    )


def get_fx_override(db: Database, account_id: str, kind: str) -> dict[str, Any] | None:
    row = db.fetchone(
        "SELECT * FROM fx_overrides WHERE account_id = ? AND kind = ?", (account_id, kind),
    )
    return dict(row) if row else None


def list_fx_overrides(db: Database) -> list[dict[str, Any]]:
    rows = db.fetchall("SELECT * FROM fx_overrides ORDER BY account_id, kind")
    return [dict(r) for r in rows]


def delete_fx_override(db: Database, account_id: str, kind: str) -> bool:
    return db.write(
        "DELETE FROM fx_overrides WHERE account_id = ? AND kind = ?", (account_id, kind),
    ) > 0


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------

def upsert_commission(
    db: Database,
    provider_id: str,
    *,
    buy_pct: float = 0.0,
    sell_pct: float = 0.0,
    fixed_ars: float = 0.0,
    fixed_usd: float = 0.0,
) -> None:
    db.write(
        """INSERT INTO commissions (provider_id, buy_pct, sell_pct, fixed_ars, fixed_usd, updated_at)
        VALUES (?, ?, ?, ?, ?, datetime('now'))
        ON CONFLICT(provider_id) DO UPDATE SET
            buy_pct=excluded.buy_pct, sell_pct=excluded.sell_pct,
            fixed_ars=excluded.fixed_ars, fixed_usd=excluded.fixed_usd,
            updated_at=datetime('now')
        """,
        (provider_id, buy_pct, sell_pct, fixed_ars, fixed_usd),
    )


def list_commissions(db: Database) -> dict[str, dict[str, float]]:
    rows = db.fetchall("SELECT * FROM commissions ORDER BY provider_id")
    return {
        r["provider_id"]: {
            "buy_pct": r["buy_pct"],
            "sell_pct": r["sell_pct"],
            "fixed_ars": r["fixed_ars"],
            "fixed_usd": r["fixed_usd"],
        }
        for r in rows
    }
