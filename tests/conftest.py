"""Shared test fixtures for Argfolio.

Provides reusable fixtures for rates, holdings, a valued portfolio,
snapshots, and databases across all test modules.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from argfolio.config.schema import ArgfolioConfig
from argfolio.data.snapshot import BreakdownEntry, Snapshot
from argfolio.engine.fx import FxQuote, FxRates
from argfolio.engine.valuation import aggregate
from argfolio.portfolio.holdings import (
    AccountType,
    AssetKind,
    FixedTermTerms,
    FundTerms,
    MoneyPair,
    PriceQuote,
    PriceStatus,
    RawHolding,
    YieldTerms,
)
from argfolio.storage.database import Database
from argfolio.storage.migrations import ensure_schema

AS_OF = datetime(2026, 3, 15, 12, 0)
TODAY = date(2026, 3, 15)

# ---------------------------------------------------------------------------
# Core infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture
def test_config(tmp_path: Path) -> ArgfolioConfig:
    """Default config with a temp database path."""
    return ArgfolioConfig(database={"path": str(tmp_path / "test.db")})


@pytest.fixture
def test_db(tmp_path: Path) -> Database:
    """Database with schema applied, using temp file."""
    db = Database(tmp_path / "test.db")
    ensure_schema(db)
    yield db
    db.close()


@pytest.fixture
def memory_db() -> Database:
    """In-memory database for fast unit tests."""
    db = Database(":memory:")
    ensure_schema(db)
    yield db
    db.close()


# ---------------------------------------------------------------------------
# Rates and dates
# ---------------------------------------------------------------------------

@pytest.fixture
def rates() -> FxRates:
    """Official 1000/1050, MEP 1200/1220, crypto 1230/1250 (buy/sell)."""
    return FxRates(
        official=FxQuote(buy=1000.0, sell=1050.0),
        mep=FxQuote(buy=1200.0, sell=1220.0),
        crypto=FxQuote(buy=1230.0, sell=1250.0),
    )


@pytest.fixture
def as_of() -> datetime:
    return AS_OF


@pytest.fixture
def today() -> date:
    return TODAY


# ---------------------------------------------------------------------------
# Holdings
# ---------------------------------------------------------------------------

@pytest.fixture
def cedear_holding() -> RawHolding:
    """10 AAPL CEDEARs at ARS 100 in a broker account."""
    return RawHolding(
        account_id="iol",
        account_name="IOL",
        account_type=AccountType.BROKER,
        kind=AssetKind.CEDEAR,
        symbol="AAPL",
        quantity=10,
        price=PriceQuote(100.0, PriceStatus.OK, source="byma"),
        cost=MoneyPair(800.0, 0.7),
    )


@pytest.fixture
def fixed_term_holding() -> RawHolding:
    """ARS 100k at 40% TNA, 30-day term starting 2026-03-01."""
    return RawHolding(
        account_id="galicia",
        account_name="Galicia",
        account_type=AccountType.BANK,
        kind=AssetKind.PLAZO_FIJO,
        symbol="PF",
        item_id="PF-001",
        terms=FixedTermTerms(
            principal=100_000.0,
            tna=40.0,
            start_date=date(2026, 3, 1),
            maturity_date=date(2026, 3, 31),
        ),
    )


@pytest.fixture
def wallet_holding() -> RawHolding:
    """ARS 100k remunerated wallet at 40% TNA."""
    return RawHolding(
        account_id="mp",
        account_name="Mercado Pago",
        account_type=AccountType.WALLET,
        kind=AssetKind.WALLET_YIELD,
        symbol="ARS",
        balance=100_000.0,
        terms=YieldTerms(tna=40.0),
    )


@pytest.fixture
def sample_holdings(cedear_holding, fixed_term_holding, wallet_holding) -> list[RawHolding]:
    """One holding of every kind across five providers."""
    return [
        cedear_holding,
        RawHolding(
            account_id="iol-cash",
            account_name="IOL (Liquidez)",
            account_type=AccountType.BROKER,
            kind=AssetKind.CASH_ARS,
            symbol="ARS",
            balance=5_000.0,
        ),
        RawHolding(
            account_id="binance",
            account_name="Binance",
            account_type=AccountType.EXCHANGE,
            kind=AssetKind.CRYPTO,
            symbol="BTC",
            quantity=0.01,
            price=PriceQuote(60_000.0, PriceStatus.OK, source="binance"),
            cost=MoneyPair(600_000.0, 500.0),
        ),
        RawHolding(
            account_id="binance",
            account_name="Binance",
            account_type=AccountType.EXCHANGE,
            kind=AssetKind.STABLE,
            symbol="USDT",
            quantity=100,
        ),
        RawHolding(
            account_id="binance",
            account_name="Binance",
            account_type=AccountType.EXCHANGE,
            kind=AssetKind.CASH_USD,
            symbol="USD",
            balance=50.0,
        ),
        wallet_holding,
        fixed_term_holding,
        RawHolding(
            account_id="balanz",
            account_name="Balanz",
            account_type=AccountType.BROKER,
            kind=AssetKind.FCI,
            symbol="Balanz Ahorro",
            quantity=1_000,
            price=PriceQuote(12.5, PriceStatus.OK, source="cafci"),
            terms=FundTerms(instrument_id="BALANZ-AHORRO-A"),
        ),
    ]


@pytest.fixture
def portfolio(sample_holdings, rates):
    """Sample holdings valued at AS_OF with the default policy."""
    return aggregate(sample_holdings, rates=rates, as_of=AS_OF)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def make_snapshot(
    date_key: str,
    ars: float,
    usd: float | None = None,
    breakdown: dict[str, tuple[str, float, float]] | None = None,
) -> Snapshot:
    """Snapshot with ``breakdown`` given as key -> (category, ars, usd)."""
    items = {
        key: BreakdownEntry(category, a, u)
        for key, (category, a, u) in (breakdown or {}).items()
    }
    return Snapshot(
        date_key=date_key,
        total=MoneyPair(ars, usd if usd is not None else ars / 1000),
        breakdown_items=items,
    )


@pytest.fixture
def snapshot_factory():
    return make_snapshot
