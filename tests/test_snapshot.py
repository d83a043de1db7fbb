"""Tests for argfolio.data.snapshot -- snapshot construction, readiness, stores."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from argfolio.data.snapshot import (
    SNAPSHOT_SCHEMA_VERSION,
    InMemorySnapshotStore,
    Snapshot,
    SnapshotReadiness,
    build_breakdown,
    build_snapshot,
    fx_reference,
    is_portfolio_ready_for_snapshot,
    snapshot_readiness,
)
from argfolio.engine.fx import FxRates
from argfolio.engine.valuation import aggregate
from argfolio.portfolio.holdings import (
    AssetKind,
    MoneyPair,
    PriceQuote,
    RawHolding,
    build_asset_key,
)

# ---------------------------------------------------------------------------
# Asset keys
# ---------------------------------------------------------------------------

class TestAssetKey:
    def test_cedear(self):
        assert build_asset_key(AssetKind.CEDEAR, "iol", "aapl") == "cedear:iol:AAPL"

    def test_stable_shares_crypto_prefix(self):
        assert build_asset_key(AssetKind.STABLE, "binance", "usdt") == "crypto:binance:USDT"

    def test_fund_keys_on_instrument(self):
        key = build_asset_key(AssetKind.FCI, "balanz", "Ahorro", instrument_id="BALANZ-AHORRO-A")
        assert key == "fci:balanz:balanz-ahorro-a"

    def test_fixed_term_keys_on_item_id(self):
        key = build_asset_key(AssetKind.PLAZO_FIJO, "galicia", "PF", item_id="PF 001")
        assert key == "pf:galicia:pf-001"

    def test_cash_kinds_share_wallet_prefix(self):
        assert build_asset_key(AssetKind.CASH_ARS, "mp", "ARS") == "wallet:mp:ARS"
        assert build_asset_key(AssetKind.WALLET_YIELD, "mp", "ARS") == "wallet:mp:ARS"

    def test_sanitized(self):
        key = build_asset_key(AssetKind.CEDEAR, " My Broker!! ", "brk.b")
        assert key == "cedear:my-broker:BRK-B"

    def test_empty_parts(self):
        assert build_asset_key(AssetKind.CEDEAR, "", "") == "cedear:unknown:UNKNOWN"


# ---------------------------------------------------------------------------
# build_snapshot
# ---------------------------------------------------------------------------

class TestBuildSnapshot:
    def test_totals_match_portfolio(self, portfolio):
        snap = build_snapshot(portfolio)
        assert snap.total == portfolio.total
        assert snap.date_key == "2026-03-15"
        assert snap.schema_version == SNAPSHOT_SCHEMA_VERSION

    def test_breakdown_keys(self, portfolio):
        snap = build_snapshot(portfolio)
        assert "cedear:iol:AAPL" in snap.breakdown_items
        assert "pf:galicia:pf-001" in snap.breakdown_items
        assert "fci:balanz:balanz-ahorro-a" in snap.breakdown_items
        assert snap.breakdown_items["crypto:binance:BTC"].category_id == "crypto"

    def test_breakdown_sums_to_total(self, portfolio):
        snap = build_snapshot(portfolio)
        assert sum(e.ars for e in snap.breakdown_items.values()) == pytest.approx(snap.total.ars)
        assert sum(e.usd for e in snap.breakdown_items.values()) == pytest.approx(snap.total.usd)

    def test_category_totals(self, portfolio):
        snap = build_snapshot(portfolio)
        assert set(snap.breakdown_categories) == {c.id for c in portfolio.categories}

    def test_colliding_keys_summed(self, rates, as_of):
        holdings = [
            RawHolding(account_id="iol", kind=AssetKind.CEDEAR, symbol="KO", quantity=1, price=PriceQuote(10.0)),
            RawHolding(account_id="iol", kind=AssetKind.CEDEAR, symbol="ko", quantity=2, price=PriceQuote(10.0)),
        ]
        breakdown = build_breakdown(aggregate(holdings, rates=rates, as_of=as_of))
        assert list(breakdown) == ["cedear:iol:KO"]
        assert breakdown["cedear:iol:KO"].ars == pytest.approx(30.0)

    def test_fx_used(self, portfolio):
        assert fx_reference(portfolio) == {"official": 1050.0, "mep": 1220.0, "crypto": 1250.0}

    def test_explicit_date_and_created(self, portfolio):
        created = datetime(2026, 3, 15, 18, 0, tzinfo=timezone.utc)
        snap = build_snapshot(portfolio, date_key="2026-03-14", created_at=created)
        assert snap.date_key == "2026-03-14"
        assert snap.created_at == created.isoformat()

    def test_pure(self, portfolio):
        assert build_snapshot(portfolio) == build_snapshot(portfolio)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

class TestSnapshotDict:
    def test_round_trip(self, portfolio):
        snap = build_snapshot(portfolio)
        assert Snapshot.from_dict(snap.to_dict()) == snap

    def test_legacy_shape(self):
        legacy = {
            "dateLocal": "2025-12-01",
            "totalARS": 1_000_000,
            "totalUSD": 900.5,
            "fxUsed": 1110.0,
            "breakdownItems": {
                "cedear:iol:AAPL": {"rubroId": "cedears", "ars": 500_000, "usd": 450.0},
            },
            "createdAtISO": "2025-12-01T20:00:00Z",
        }
        snap = Snapshot.from_dict(legacy)
        assert snap.date_key == "2025-12-01"
        assert snap.total == MoneyPair(1_000_000.0, 900.5)
        assert snap.breakdown_items["cedear:iol:AAPL"].category_id == "cedears"
        assert snap.fx_used == {"reference": 1110.0}
        assert snap.schema_version == 1

    def test_totals_only_legacy(self):
        snap = Snapshot.from_dict({"dateLocal": "2025-11-01", "totalARS": 10, "totalUSD": None})
        assert not snap.has_breakdown
        assert snap.total.usd == 0.0
        assert snap.source == "legacy"

    def test_missing_date_raises(self):
        with pytest.raises(ValueError):
            Snapshot.from_dict({"total_ars": 1})

    def test_category_totals_derived(self, snapshot_factory):
        snap = snapshot_factory("2026-03-01", 300.0, breakdown={
            "cedear:iol:A": ("cedears", 100.0, 0.1),
            "cedear:iol:B": ("cedears", 150.0, 0.15),
            "wallet:mp:ARS": ("wallets", 50.0, 0.05),
        })
        totals = snap.category_totals()
        assert totals["cedears"].ars == pytest.approx(250.0)
        assert totals["wallets"].ars == pytest.approx(50.0)


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------

class TestReadiness:
    def test_ready(self, portfolio):
        assert snapshot_readiness(portfolio) is SnapshotReadiness.READY
        assert is_portfolio_ready_for_snapshot(portfolio)

    def test_loading(self):
        assert snapshot_readiness(None) is SnapshotReadiness.LOADING

    def test_no_fx(self, sample_holdings, as_of):
        portfolio = aggregate(sample_holdings, rates=FxRates(), as_of=as_of)
        assert snapshot_readiness(portfolio) is SnapshotReadiness.NO_FX

    def test_total_zero_with_assets(self, rates, as_of):
        holdings = [RawHolding(account_id="iol", kind=AssetKind.CEDEAR, symbol="X", quantity=3)]
        portfolio = aggregate(holdings, rates=rates, as_of=as_of)
        assert snapshot_readiness(portfolio) is SnapshotReadiness.TOTAL_ZERO_WITH_ASSETS
        assert not is_portfolio_ready_for_snapshot(portfolio)

    def test_empty_portfolio_is_ready(self, rates, as_of):
        portfolio = aggregate([], rates=rates, as_of=as_of)
        assert snapshot_readiness(portfolio) is SnapshotReadiness.READY


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class TestInMemoryStore:
    def test_one_per_date(self, snapshot_factory):
        store = InMemorySnapshotStore()
        store.save(snapshot_factory("2026-03-01", 100.0))
        store.save(snapshot_factory("2026-03-01", 200.0))
        assert len(store) == 1
        assert store.list_snapshots()[0].total.ars == 200.0

    def test_sorted_ascending(self, snapshot_factory):
        store = InMemorySnapshotStore([
            snapshot_factory("2026-03-03", 3.0),
            snapshot_factory("2026-03-01", 1.0),
            snapshot_factory("2026-03-02", 2.0),
        ])
        assert [s.date_key for s in store.list_snapshots()] == ["2026-03-01", "2026-03-02", "2026-03-03"]

    def test_delete_and_clear(self, snapshot_factory):
        store = InMemorySnapshotStore([snapshot_factory("2026-03-01", 1.0), snapshot_factory("2026-03-02", 2.0)])
        assert store.delete("2026-03-01") is True
        assert store.delete("2026-03-01") is False
        assert store.clear() == 1
        assert store.list_snapshots() == []
