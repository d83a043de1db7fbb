"""SQLite-backed implementations of the snapshot and override stores."""

from __future__ import annotations

import logging

from argfolio.data.snapshot import Snapshot
from argfolio.engine.fx import FxOverride, FxPolicy
from argfolio.engine.valuation import CommissionSettings
from argfolio.portfolio.holdings import AssetKind
from argfolio.storage import queries
from argfolio.storage.database import Database

logger = logging.getLogger(__name__)


class SqliteSnapshotStore:
    """Snapshots persisted one per date in the ``snapshots`` table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def save(self, snapshot: Snapshot) -> None:
        queries.upsert_snapshot(self.db, snapshot.to_dict())
        logger.info(
            "Saved snapshot %s (ARS %.2f, USD %.2f)",
            snapshot.date_key, snapshot.total.ars, snapshot.total.usd,
        )

    def get(self, date_key: str) -> Snapshot | None:
        record = queries.get_snapshot(self.db, date_key)
        return Snapshot.from_dict(record) if record else None

    def list_snapshots(self) -> list[Snapshot]:
        snapshots = []
        for record in queries.list_snapshots(self.db):
            try:
                snapshots.append(Snapshot.from_dict(record))
            except ValueError as e:
                logger.warning("Skipping unreadable snapshot record: %s", e)
        return snapshots

    def delete(self, date_key: str) -> bool:
        return queries.delete_snapshot(self.db, date_key)

    def clear(self) -> int:
        removed = queries.delete_all_snapshots(self.db)
        logger.info("Deleted %d snapshot(s)", removed)
        return removed


class SqliteOverrideStore:
    """FX overrides keyed by (account id, asset kind)."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get_override(self, account_id: str, kind: AssetKind) -> FxPolicy | None:
        row = queries.get_fx_override(self.db, account_id, AssetKind(kind).value)
        return FxPolicy(row["family"], row["side"]) if row else None

    def all_overrides(self) -> list[FxOverride]:
        return [
            FxOverride(r["account_id"], AssetKind(r["kind"]), FxPolicy(r["family"], r["side"]))
            for r in queries.list_fx_overrides(self.db)
        ]

    def set_override(self, account_id: str, kind: AssetKind, policy: FxPolicy) -> None:
        queries.upsert_fx_override(
            self.db, account_id, AssetKind(kind).value, policy.family.value, policy.side.value,
        )

    def clear_override(self, account_id: str, kind: AssetKind) -> bool:
        return queries.delete_fx_override(self.db, account_id, AssetKind(kind).value)


def load_commissions(db: Database) -> dict[str, CommissionSettings]:
    return {
        provider_id: CommissionSettings(**values)
        for provider_id, values in queries.list_commissions(db).items()
    }
