"""Portfolio snapshots.

A snapshot is an immutable point-in-time record of the valued portfolio:
dual-currency totals plus a per-asset breakdown keyed by the stable asset
key. ``build_snapshot`` is the one constructor, so what gets persisted is
exactly what the drivers engine diffs against later.

Persistence belongs to a ``SnapshotStore``; the in-memory store here and the
SQLite store in ``argfolio.storage.stores`` both satisfy it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping, Protocol

from argfolio.engine.fx import FxFamily, FxSide, resolve_rate
from argfolio.engine.valuation import Portfolio
from argfolio.portfolio.holdings import MoneyPair

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 2
SNAPSHOT_SOURCE = "v2"


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BreakdownEntry:
    category_id: str
    ars: float
    usd: float

    @property
    def value(self) -> MoneyPair:
        return MoneyPair(self.ars, self.usd)


@dataclass(frozen=True)
class Snapshot:
    date_key: str
    total: MoneyPair
    breakdown_items: dict[str, BreakdownEntry] = field(default_factory=dict)
    breakdown_categories: dict[str, MoneyPair] = field(default_factory=dict)
    fx_used: dict[str, float] = field(default_factory=dict)
    source: str = SNAPSHOT_SOURCE
    created_at: str = ""
    schema_version: int = SNAPSHOT_SCHEMA_VERSION

    @property
    def date(self) -> date:
        return date.fromisoformat(self.date_key)

    @property
    def has_breakdown(self) -> bool:
        return bool(self.breakdown_items)

    def category_totals(self) -> dict[str, MoneyPair]:
        """Per-category totals, derived from the item breakdown when absent."""
        if self.breakdown_categories:
            return dict(self.breakdown_categories)
        totals: dict[str, MoneyPair] = {}
        for entry in self.breakdown_items.values():
            totals[entry.category_id] = totals.get(entry.category_id, MoneyPair()) + entry.value
        return totals

    def to_dict(self) -> dict[str, Any]:
        return {
            "date_key": self.date_key,
            "total_ars": self.total.ars,
            "total_usd": self.total.usd,
            "breakdown_items": {
                key: {"category_id": e.category_id, "ars": e.ars, "usd": e.usd}
                for key, e in self.breakdown_items.items()
            },
            "breakdown_categories": {
                key: {"ars": v.ars, "usd": v.usd}
                for key, v in self.breakdown_categories.items()
            },
            "fx_used": dict(self.fx_used),
            "source": self.source,
            "created_at": self.created_at,
            "schema_version": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Snapshot:
        """Read the current shape or the legacy camelCase shape.

        Legacy records (``dateLocal``, ``totalARS``, ``breakdownItems`` with
        ``rubroId``) are mapped onto the same fields; records without a
        breakdown load as totals-only snapshots.
        """
        date_key = data.get("date_key") or data.get("dateLocal")
        if not date_key:
            raise ValueError("Snapshot record has no date key")

        raw_items = data.get("breakdown_items") or data.get("breakdownItems") or {}
        items = {
            key: BreakdownEntry(
                category_id=str(entry.get("category_id") or entry.get("rubroId") or ""),
                ars=_as_float(entry.get("ars")),
                usd=_as_float(entry.get("usd")),
            )
            for key, entry in raw_items.items()
        }

        raw_categories = data.get("breakdown_categories") or data.get("breakdownRubros") or {}
        categories = {
            key: MoneyPair(_as_float(v.get("ars")), _as_float(v.get("usd")))
            for key, v in raw_categories.items()
        }

        total = MoneyPair(
            _as_float(_first(data, "total_ars", "totalARS")),
            _as_float(_first(data, "total_usd", "totalUSD")),
        )
        default_version = SNAPSHOT_SCHEMA_VERSION if "date_key" in data else 1
        return cls(
            date_key=str(date_key),
            total=total,
            breakdown_items=items,
            breakdown_categories=categories,
            fx_used=_fx_used(_first(data, "fx_used", "fxUsed")),
            source=str(data.get("source") or ("v2" if items else "legacy")),
            created_at=str(_first(data, "created_at", "createdAtISO") or ""),
            schema_version=int(data.get("schema_version", default_version)),
        )


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _as_float(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _fx_used(raw: Any) -> dict[str, float]:
    if isinstance(raw, (int, float)):
        return {"reference": float(raw)}
    if isinstance(raw, Mapping):
        return {
            str(k): float(v) for k, v in raw.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        }
    return {}


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def build_breakdown(portfolio: Portfolio) -> dict[str, BreakdownEntry]:
    """Per-asset values keyed by asset key; colliding keys are summed."""
    breakdown: dict[str, BreakdownEntry] = {}
    for item in portfolio.items:
        existing = breakdown.get(item.asset_key)
        if existing is None:
            breakdown[item.asset_key] = BreakdownEntry(item.category_id, item.value.ars, item.value.usd)
        else:
            breakdown[item.asset_key] = BreakdownEntry(
                existing.category_id, existing.ars + item.value.ars, existing.usd + item.value.usd,
            )
    return breakdown


def fx_reference(portfolio: Portfolio) -> dict[str, float]:
    """Sell-side quote per family that was available at valuation time."""
    used = {}
    for family in FxFamily:
        rate = resolve_rate(portfolio.rates, family, FxSide.BUY)
        if math.isfinite(rate) and rate > 0:
            used[family.value] = rate
    return used


def build_snapshot(
    portfolio: Portfolio,
    *,
    date_key: str | None = None,
    source: str = SNAPSHOT_SOURCE,
    created_at: datetime | None = None,
) -> Snapshot:
    """Construct the snapshot record for ``portfolio``. Pure."""
    if date_key is None:
        date_key = portfolio.as_of.date().isoformat()
    created = created_at or portfolio.as_of
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return Snapshot(
        date_key=date_key,
        total=portfolio.total,
        breakdown_items=build_breakdown(portfolio),
        breakdown_categories={c.id: c.totals for c in portfolio.categories},
        fx_used=fx_reference(portfolio),
        source=source,
        created_at=created.isoformat(),
    )


# ---------------------------------------------------------------------------
# Readiness guard
# ---------------------------------------------------------------------------

class SnapshotReadiness(str, Enum):
    READY = "ready"
    LOADING = "loading"
    NO_FX = "no_fx"
    TOTAL_ZERO_WITH_ASSETS = "total_zero_with_assets"


def snapshot_readiness(portfolio: Portfolio | None) -> SnapshotReadiness:
    """Whether persisting ``portfolio`` now would record a trustworthy total."""
    if portfolio is None:
        return SnapshotReadiness.LOADING
    if not portfolio.rates.has_any_rate():
        return SnapshotReadiness.NO_FX
    if portfolio.items and portfolio.total.ars <= 0 and portfolio.total.usd <= 0:
        return SnapshotReadiness.TOTAL_ZERO_WITH_ASSETS
    return SnapshotReadiness.READY


def is_portfolio_ready_for_snapshot(portfolio: Portfolio | None) -> bool:
    return snapshot_readiness(portfolio) is SnapshotReadiness.READY


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class SnapshotStore(Protocol):
    """Read side of persisted snapshots, ascending by date."""

    def list_snapshots(self) -> list[Snapshot]: ...


class InMemorySnapshotStore:
    """One snapshot per date; saving a date again replaces it."""

    def __init__(self, snapshots: list[Snapshot] | None = None) -> None:
        self._by_date: dict[str, Snapshot] = {}
        for snap in snapshots or []:
            self.save(snap)

    def save(self, snapshot: Snapshot) -> None:
        self._by_date[snapshot.date_key] = snapshot

    def list_snapshots(self) -> list[Snapshot]:
        return [self._by_date[k] for k in sorted(self._by_date)]

    def delete(self, date_key: str) -> bool:
        return self._by_date.pop(date_key, None) is not None

    def clear(self) -> int:
        count = len(self._by_date)
        self._by_date.clear()
        return count

    def __len__(self) -> int:
        return len(self._by_date)
